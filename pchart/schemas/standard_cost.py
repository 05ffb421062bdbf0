from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from pchart.schemas.base import BaseResponseSchema, BaseUpdateSchema


class StandardCostCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    cost_per_unit: Decimal = Field(..., ge=0, max_digits=10, decimal_places=4)
    currency: str = Field("USD", min_length=3, max_length=3)


class StandardCostUpdate(BaseUpdateSchema):
    item_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    cost_per_unit: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=4)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class StandardCostResponse(BaseResponseSchema):
    id: UUID
    item_name: str
    description: Optional[str] = None
    cost_per_unit: Decimal
    currency: str
    is_active: bool
    created_by_id: Optional[UUID] = None
    updated_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class StandardCostListResponse(BaseModel):
    items: List[StandardCostResponse]
    total: int
    skip: int
    limit: int
