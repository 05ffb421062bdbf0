"""Lock schemas. A lock is keyed by (resource_type, resource_id)."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


PRODUCTION_ORDER_RESOURCE = "productionOrder"


class LockRequest(BaseModel):
    resource_type: str = Field(PRODUCTION_ORDER_RESOURCE, description="Only 'productionOrder' is supported")
    resource_id: str = Field(..., min_length=1, description="PO number")


class LockInfo(BaseModel):
    user_id: UUID
    user_name: Optional[str] = None
    locked_at: datetime


class LockResult(BaseModel):
    success: bool
    is_owner: bool = False
    read_only: bool = False
    released: bool = False
    lock_info: Optional[LockInfo] = None
    message: Optional[str] = None


class LockStatus(BaseModel):
    resource_type: str = PRODUCTION_ORDER_RESOURCE
    resource_id: str
    is_locked: bool
    is_owner: bool = False
    is_orphaned: bool = False
    lock_info: Optional[LockInfo] = None
