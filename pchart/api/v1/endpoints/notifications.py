"""In-app notification endpoints for the current user."""
from typing import Optional

from fastapi import APIRouter, Query

from pchart.api.deps import DB, CurrentActor
from pchart.core.events import event_bus, UPDATE_NOTIFICATION_COUNT
from pchart.schemas.notification import (
    NotificationResponse, NotificationListResponse, NotificationCount, NotificationMarkRead,
)
from pchart.services.notification_service import NotificationService


router = APIRouter()


@router.get("/my", response_model=NotificationListResponse)
async def get_my_notifications(
    db: DB,
    actor: CurrentActor,
    is_read: Optional[bool] = Query(None),
    notification_type: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    service = NotificationService(db)
    notifications, total = await service.list_for_user(
        actor.user_id,
        is_read=is_read,
        notification_type=notification_type,
        skip=skip,
        limit=limit,
    )
    counts = await service.get_counts(actor.user_id)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=counts["unread"],
    )


@router.get("/my/count", response_model=NotificationCount)
async def get_my_notification_count(db: DB, actor: CurrentActor):
    return NotificationCount(**await NotificationService(db).get_counts(actor.user_id))


@router.put("/my/read")
async def mark_my_notifications_read(data: NotificationMarkRead, db: DB, actor: CurrentActor):
    """Mark the given notifications read, or all of them when no ids are sent."""
    updated = await NotificationService(db).mark_read(actor.user_id, data.notification_ids)
    if updated:
        event_bus.emit(UPDATE_NOTIFICATION_COUNT, {"user_id": str(actor.user_id)})
    return {"updated": updated}
