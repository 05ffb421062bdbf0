"""
Defect Edit Request Schemas.

Requested quantities follow the same balance rule as ledger entries, except
for delete requests whose requested quantities are always zero.
"""
from datetime import datetime
from typing import Optional, List, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from pchart.models.defect_edit_request import EditRequestType
from pchart.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


SORT_FIELDS = (
    "created_at", "status", "request_type", "requested_qty", "current_qty",
    "po_number", "operation_code", "defect_name", "resolved_at",
)


def _balance_requested(values):
    rw = values.requested_rw or 0
    ng = values.requested_ng or 0
    if values.requested_qty is None:
        values.requested_qty = rw + ng
    elif values.requested_qty != rw + ng:
        raise ValueError(
            f"requested_qty ({values.requested_qty}) must equal requested_rw ({rw}) + requested_ng ({ng})"
        )
    return values


class DefectEditRequestCreate(BaseCreateSchema):
    request_type: EditRequestType = EditRequestType.EDIT
    operation_defect_id: Optional[UUID] = None
    operation_id: Optional[UUID] = None
    defect_id: Optional[UUID] = None
    requested_qty: Optional[int] = Field(None, ge=0)
    requested_rw: int = Field(0, ge=0)
    requested_ng: int = Field(0, ge=0)
    requested_replacement: Optional[int] = Field(None, ge=0)
    reason: str = Field(..., min_length=1)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        """Whitespace-only reasons are rejected by min_length."""
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def check_requested(self):
        if self.request_type == EditRequestType.DELETE:
            self.requested_qty = 0
            self.requested_rw = 0
            self.requested_ng = 0
            self.requested_replacement = 0
            return self
        return _balance_requested(self)


class DefectEditRequestUpdate(BaseUpdateSchema):
    """Requester amendment of a pending request."""
    requested_qty: Optional[int] = Field(None, ge=0)
    requested_rw: Optional[int] = Field(None, ge=0)
    requested_ng: Optional[int] = Field(None, ge=0)
    requested_replacement: Optional[int] = Field(None, ge=0)
    reason: Optional[str] = Field(None, min_length=1)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class DefectEditRequestResolve(BaseModel):
    status: Literal["approved", "rejected"]
    comments: Optional[str] = None


class DefectEditRequestResponse(BaseResponseSchema):
    id: UUID
    request_type: str
    status: str
    operation_defect_id: Optional[UUID] = None
    operation_id: UUID
    production_order_id: UUID
    po_number: str
    operation_code: Optional[str] = None
    defect_id: Optional[UUID] = None
    defect_name: Optional[str] = None
    requested_by_id: Optional[UUID] = None
    requested_by_name: Optional[str] = None
    current_qty: int
    current_rw: int
    current_ng: int
    current_replacement: int
    requested_qty: int
    requested_rw: int
    requested_ng: int
    requested_replacement: int
    reason: str
    resolved_by_id: Optional[UUID] = None
    resolution_note: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class DefectEditRequestListResponse(BaseModel):
    items: List[DefectEditRequestResponse]
    total: int
    skip: int
    limit: int


class DefectEditRequestCount(BaseModel):
    status: str
    count: int


StatusFilter = Literal["pending", "approved", "rejected", "all"]
SortDirection = Literal["asc", "desc"]
