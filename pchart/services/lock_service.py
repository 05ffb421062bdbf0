"""
Lock Service - advisory single-owner edit lock per production order.

The lock lives on the production order row (editing_user_id, editing_user_name,
locked_at). Acquisition is one conditional UPDATE, so two concurrent callers
cannot both win. Locks never expire; an abandoned lock stays until its holder
releases it or an admin force-releases it.
"""
import logging
from typing import Optional

from sqlalchemy import select, update, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.core.events import event_bus, LOCK_STATE_CHANGED
from pchart.db_types import utcnow
from pchart.models.notification import NotificationType
from pchart.models.production import ProductionOrder
from pchart.models.user import User
from pchart.schemas.lock import LockInfo, LockResult, LockStatus, PRODUCTION_ORDER_RESOURCE
from pchart.services.audit_service import AuditService
from pchart.services.errors import LockConflictError, DomainValidationError
from pchart.services.guards import ensure_admin
from pchart.services.notification_service import NotificationService
from pchart.services.production_order_service import ProductionOrderService


logger = logging.getLogger(__name__)


def check_resource_type(resource_type: str) -> None:
    if resource_type != PRODUCTION_ORDER_RESOURCE:
        raise DomainValidationError(
            f"Unsupported lock resource type: {resource_type}",
            details={"resource_type": resource_type, "supported": [PRODUCTION_ORDER_RESOURCE]}
        )


def lock_info_of(order: ProductionOrder) -> Optional[LockInfo]:
    if order.editing_user_id is None or order.locked_at is None:
        return None
    return LockInfo(
        user_id=order.editing_user_id,
        user_name=order.editing_user_name,
        locked_at=order.locked_at,
    )


class LockService:
    """Acquire, release, force-release and inspect production order locks."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = ProductionOrderService(db)
        self.audit = AuditService(db)
        self.notifications = NotificationService(db)

    async def is_orphaned(self, order: ProductionOrder) -> bool:
        """A lock is orphaned when its holder no longer exists."""
        if order.editing_user_id is None:
            return False
        result = await self.db.execute(
            select(func.count(User.id)).where(User.id == order.editing_user_id)
        )
        return (result.scalar() or 0) == 0

    async def _conflict(self, order: ProductionOrder) -> LockConflictError:
        orphaned = await self.is_orphaned(order)
        holder = order.editing_user_name or str(order.editing_user_id)
        return LockConflictError(
            f"Production order {order.po_number} is being edited by {holder}",
            details={
                "po_number": order.po_number,
                "lock_info": {
                    "user_id": str(order.editing_user_id),
                    "user_name": order.editing_user_name,
                    "locked_at": order.locked_at.isoformat() if order.locked_at else None,
                },
                "is_orphaned": orphaned,
            }
        )

    async def ensure_can_mutate(self, order: ProductionOrder, actor: ActorContext) -> None:
        """Raise LockConflictError when another user holds the order's lock."""
        if order.editing_user_id is not None and order.editing_user_id != actor.user_id:
            raise await self._conflict(order)

    async def acquire(
        self,
        po_number: str,
        actor: ActorContext,
        resource_type: str = PRODUCTION_ORDER_RESOURCE,
    ) -> LockResult:
        """
        Take the edit lock for the actor.

        Re-entry by the holder succeeds and keeps the original locked_at.
        Viewers never take the lock and get a read-only result instead.
        """
        check_resource_type(resource_type)
        order = await self.orders.get_by_po_number(po_number)

        if actor.is_viewer:
            return LockResult(
                success=True,
                is_owner=False,
                read_only=True,
                lock_info=lock_info_of(order),
                message="Read-only access",
            )

        result = await self.db.execute(
            update(ProductionOrder)
            .where(ProductionOrder.id == order.id)
            .where(
                or_(
                    ProductionOrder.editing_user_id.is_(None),
                    ProductionOrder.editing_user_id == actor.user_id,
                )
            )
            .values(
                editing_user_id=actor.user_id,
                editing_user_name=actor.user_name,
                locked_at=func.coalesce(ProductionOrder.locked_at, utcnow()),
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            order = await self.orders.get_by_po_number(po_number)
            conflict = await self._conflict(order)
            logger.info(
                f"Lock conflict on {po_number}: requested by {actor.user_name}, "
                f"held by {order.editing_user_name}"
            )
            raise conflict

        await self.db.commit()
        order = await self.orders.get_by_po_number(po_number)
        logger.info(f"Lock on {po_number} held by {actor.user_name}")

        event_bus.emit(LOCK_STATE_CHANGED, {
            "po_number": po_number,
            "action": "acquired",
            "user_id": str(actor.user_id),
            "user_name": actor.user_name,
        })
        return LockResult(success=True, is_owner=True, lock_info=lock_info_of(order))

    async def release(
        self,
        po_number: str,
        actor: ActorContext,
        resource_type: str = PRODUCTION_ORDER_RESOURCE,
    ) -> LockResult:
        """Clear the lock if the actor holds it. A non-holder gets released=False."""
        check_resource_type(resource_type)
        order = await self.orders.get_by_po_number(po_number)

        result = await self.db.execute(
            update(ProductionOrder)
            .where(ProductionOrder.id == order.id)
            .where(ProductionOrder.editing_user_id == actor.user_id)
            .values(editing_user_id=None, editing_user_name=None, locked_at=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        order = await self.orders.get_by_po_number(po_number)

        if result.rowcount == 0:
            return LockResult(
                success=True,
                released=False,
                lock_info=lock_info_of(order),
                message="Lock is not held by the caller",
            )

        logger.info(f"Lock on {po_number} released by {actor.user_name}")
        event_bus.emit(LOCK_STATE_CHANGED, {
            "po_number": po_number,
            "action": "released",
            "user_id": str(actor.user_id),
            "user_name": actor.user_name,
        })
        return LockResult(success=True, released=True)

    async def force_release(
        self,
        po_number: str,
        actor: ActorContext,
        resource_type: str = PRODUCTION_ORDER_RESOURCE,
    ) -> LockResult:
        """Admin-only unconditional release. Notifies the previous holder."""
        check_resource_type(resource_type)
        ensure_admin(actor, "force-release locks")
        order = await self.orders.get_by_po_number(po_number)

        previous = lock_info_of(order)
        if previous is None:
            return LockResult(success=True, released=False, message="Production order is not locked")

        holder_exists = not await self.is_orphaned(order)

        await self.db.execute(
            update(ProductionOrder)
            .where(ProductionOrder.id == order.id)
            .values(editing_user_id=None, editing_user_name=None, locked_at=None)
            .execution_options(synchronize_session=False)
        )

        await self.audit.log(
            action="FORCE_RELEASE_LOCK",
            entity_type="PRODUCTION_ORDER",
            entity_id=order.id,
            user_id=actor.user_id,
            old_values={
                "editing_user_id": previous.user_id,
                "editing_user_name": previous.user_name,
                "locked_at": previous.locked_at,
            },
            new_values={"editing_user_id": None},
            description=f"Force-released lock on {po_number} held by {previous.user_name}",
        )

        if holder_exists and previous.user_id != actor.user_id:
            await self.notifications.create(
                user_id=previous.user_id,
                notification_type=NotificationType.LOCK_FORCE_RELEASED.value,
                title="Edit lock released",
                message=f"{actor.user_name} released your edit lock on production order {po_number}",
                entity_type="production_order",
                entity_id=order.id,
                action_url=f"/production-orders/{po_number}",
            )

        await self.db.commit()
        logger.info(f"Lock on {po_number} force-released by {actor.user_name} (was {previous.user_name})")

        event_bus.emit(LOCK_STATE_CHANGED, {
            "po_number": po_number,
            "action": "force-released",
            "previous_user_id": str(previous.user_id),
            "previous_user_name": previous.user_name,
            "released_by": str(actor.user_id),
        })
        return LockResult(success=True, released=True, lock_info=previous)

    async def status(
        self,
        po_number: str,
        actor: ActorContext,
        resource_type: str = PRODUCTION_ORDER_RESOURCE,
    ) -> LockStatus:
        check_resource_type(resource_type)
        order = await self.orders.get_by_po_number(po_number)
        return await self.status_of(order, actor)

    async def status_of(self, order: ProductionOrder, actor: ActorContext) -> LockStatus:
        info = lock_info_of(order)
        return LockStatus(
            resource_id=order.po_number,
            is_locked=info is not None,
            is_owner=info is not None and info.user_id == actor.user_id,
            is_orphaned=await self.is_orphaned(order),
            lock_info=info,
        )
