from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # One shift

    # App Settings
    APP_NAME: str = "P-Chart"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:5173",
    ]

    # Operation sequence seeded into operation_steps when the table is empty.
    # Format: "CODE:Label,CODE:Label" in step order.
    OPERATION_STEPS: str = (
        "OP10:Cable Cutting,"
        "OP15:1st Side Process,"
        "OP20:2nd Side Process,"
        "OP30:Taping Process,"
        "OP40:QA"
    )

    # First admin account, created only when the users table is empty
    FIRST_ADMIN_USERNAME: str = "admin"
    FIRST_ADMIN_PASSWORD: str = "Admin@123"

    # Event forwarding (optional)
    EVENT_WEBHOOK_URL: Optional[str] = None
    EVENT_WEBHOOK_TIMEOUT: float = 5.0

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    @property
    def operation_steps_list(self) -> list[tuple[str, str]]:
        """Parse OPERATION_STEPS into (code, label) pairs, in order."""
        steps = []
        for item in self.OPERATION_STEPS.split(','):
            item = item.strip()
            if not item:
                continue
            code, _, label = item.partition(':')
            steps.append((code.strip().upper(), label.strip() or code.strip().upper()))
        return steps

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
