from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.config import settings
from pchart.core.security import verify_password, create_access_token
from pchart.db_types import utcnow
from pchart.models.user import User


class AuthService:
    """Authentication service for user login and token issuing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate_user(self, username: str, password: str) -> Optional[User]:
        """
        Authenticate a user by username and password.

        Returns:
            User object if authentication successful, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.username == username.strip())
        )
        user = result.scalar_one_or_none()

        if user is None:
            return None
        if not verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            return None

        user.last_login_at = utcnow()
        await self.db.commit()
        return user

    def create_token(self, user: User) -> Tuple[str, int]:
        """Returns (access_token, expires_in_seconds)."""
        token = create_access_token(
            user.id,
            additional_claims={"role": user.role, "name": user.display_name},
        )
        return token, settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
