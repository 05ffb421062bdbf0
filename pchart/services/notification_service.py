"""
In-app notification service.

Stores one notification row per recipient. Real-time push is handled by the
event bus; this module only persists what the user sees in their inbox.
"""
import logging
import uuid
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.db_types import utcnow
from pchart.models.notification import Notification
from pchart.models.user import User, UserRole


logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: uuid.UUID,
        notification_type: str,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        action_url: Optional[str] = None,
    ) -> Notification:
        """Add a notification to the caller's transaction."""
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            action_url=action_url,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def notify_admins(
        self,
        notification_type: str,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        action_url: Optional[str] = None,
    ) -> List[uuid.UUID]:
        """Notify every active admin. Returns the recipient ids."""
        result = await self.db.execute(
            select(User.id)
            .where(User.role == UserRole.ADMIN.value)
            .where(User.is_active == True)  # noqa: E712
        )
        admin_ids = [row[0] for row in result.all()]

        for admin_id in admin_ids:
            self.db.add(Notification(
                user_id=admin_id,
                notification_type=notification_type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
                action_url=action_url,
            ))
        await self.db.flush()

        logger.info(f"Notified {len(admin_ids)} admins: {title}")
        return admin_ids

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        is_read: Optional[bool] = None,
        notification_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Notification], int]:
        """Get a user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        count_query = select(func.count(Notification.id)).where(Notification.user_id == user_id)

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
            count_query = count_query.where(Notification.is_read == is_read)
        if notification_type:
            query = query.where(Notification.notification_type == notification_type)
            count_query = count_query.where(Notification.notification_type == notification_type)

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_counts(self, user_id: uuid.UUID) -> Dict[str, Any]:
        """Total, unread and unread-by-type counts for a user."""
        total = (await self.db.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user_id)
        )).scalar() or 0

        type_result = await self.db.execute(
            select(Notification.notification_type, func.count(Notification.id))
            .where(Notification.user_id == user_id)
            .where(Notification.is_read == False)  # noqa: E712
            .group_by(Notification.notification_type)
        )
        by_type = {row[0]: row[1] for row in type_result.all()}

        return {
            "total": total,
            "unread": sum(by_type.values()),
            "by_type": by_type,
        }

    async def mark_read(
        self,
        user_id: uuid.UUID,
        notification_ids: Optional[List[uuid.UUID]] = None,
    ) -> int:
        """Mark the given notifications (or all of them) read. Returns rows changed."""
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.is_read == False)  # noqa: E712
        )
        if notification_ids is not None:
            if not notification_ids:
                return 0
            stmt = stmt.where(Notification.id.in_(notification_ids))

        result = await self.db.execute(
            stmt.values(is_read=True, read_at=utcnow()).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount
