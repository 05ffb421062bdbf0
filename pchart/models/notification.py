"""Database model for in-app notifications."""
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index

from pchart.database import Base
from pchart.db_types import UUIDType, utcnow


class NotificationType(str, Enum):
    """Types of notifications."""
    DEFECT_EDIT = "defect-edit"
    DEFECT_EDIT_RESOLVED = "defect-edit-resolved"
    LOCK_FORCE_RELEASED = "lock-force-released"
    SYSTEM = "system"


class Notification(Base):
    """
    Notification model - one row per recipient.
    """
    __tablename__ = "notifications"

    id = Column(UUIDType(as_uuid=True), primary_key=True, default=uuid4)

    # Recipient
    user_id = Column(UUIDType(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    notification_type = Column(String(50), nullable=False, index=True, comment="defect-edit, defect-edit-resolved, lock-force-released, system")

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    # Optional link into the UI
    action_url = Column(String(500))

    # Reference to related entity
    entity_type = Column(String(50))  # e.g. "defect_edit_request", "production_order"
    entity_id = Column(UUIDType(as_uuid=True))

    # Status
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_notifications_user_unread', 'user_id', 'is_read'),
        Index('ix_notifications_user_type', 'user_id', 'notification_type'),
    )
