"""Pydantic schemas for in-app notifications."""
from datetime import datetime
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel

from pchart.schemas.base import BaseResponseSchema


class NotificationResponse(BaseResponseSchema):
    id: UUID
    notification_type: str
    title: str
    message: str
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int
    unread_count: int


class NotificationCount(BaseModel):
    total: int
    unread: int
    by_type: Dict[str, int]


class NotificationMarkRead(BaseModel):
    """Mark the listed notifications read; omit ids to mark all."""
    notification_ids: Optional[List[UUID]] = None
