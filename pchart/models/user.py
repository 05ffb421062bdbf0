import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from pchart.database import Base
from pchart.db_types import UUIDType, utcnow


class UserRole(str, Enum):
    """Roles understood by the production floor workflow."""
    ADMIN = "admin"         # Resolves edit requests, force-releases locks
    OPERATOR = "operator"   # Records operations and defects
    VIEWER = "viewer"       # Read-only, never takes a lock


class User(Base):
    """
    User model for authentication and authorization.

    Lock holders are referenced by id without a foreign key so that a
    deleted user leaves an orphaned lock behind instead of cascading.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Login
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.OPERATOR.value,
        nullable=False,
        comment="admin, operator, viewer"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def display_name(self) -> str:
        return self.name or self.username

    def __repr__(self) -> str:
        return f"<User(username={self.username}, role={self.role})>"
