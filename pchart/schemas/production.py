"""
Production Schemas - orders, operation steps and operation transitions.
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from pchart.models.production import OperationState
from pchart.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from pchart.schemas.defect import DefectEntry, OperationDefectResponse
from pchart.schemas.lock import LockStatus


# ============================================================================
# OPERATION STEP SCHEMAS
# ============================================================================

class OperationStepCreate(BaseCreateSchema):
    operation_number: str = Field(..., min_length=1, max_length=20)
    label: str = Field(..., min_length=1, max_length=100)
    step_order: int = Field(..., ge=0)


class OperationStepResponse(BaseResponseSchema):
    id: UUID
    operation_number: str
    label: str
    step_order: int


class OperationLineCreate(BaseCreateSchema):
    operation_number: str = Field(..., min_length=1, max_length=20)
    line_number: str = Field(..., min_length=1, max_length=50)


class OperationLineResponse(BaseResponseSchema):
    id: UUID
    operation_number: str
    line_number: str
    created_at: datetime


class OperationLineListResponse(BaseModel):
    operation: Optional[str] = None
    lines: List[str]
    items: List[OperationLineResponse]


# ============================================================================
# OPERATION SCHEMAS
# ============================================================================

class OperationResponse(BaseResponseSchema):
    id: UUID
    production_order_id: UUID
    operation: str
    step_order: int
    state: OperationState
    operator_id: Optional[UUID] = None
    input_quantity: int
    output_quantity: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    rf: int
    line_no: Optional[str] = None
    defects: List[OperationDefectResponse] = []


class StartOperationRequest(BaseModel):
    po_number: str = Field(..., min_length=1)
    operation_code: str = Field(..., min_length=1)


class CompleteOperationRequest(BaseModel):
    """
    Completion of a started operation.

    defects carries the full ledger snapshot, zero-quantity entries included.
    line_no is checked by the service so a blank value is rejected as a
    domain error without touching any row.
    """
    po_number: str = Field(..., min_length=1)
    operation_code: str = Field(..., min_length=1)
    line_no: Optional[str] = None
    rf: Optional[int] = Field(None, ge=1)
    defects: List[DefectEntry] = []
    timestamp: Optional[datetime] = None


class CompletionResult(BaseModel):
    operation: OperationResponse
    output_quantity: int
    next_operation: Optional[str] = None
    next_operation_started: bool = False
    order_completed: bool = False
    warnings: List[str] = []


# ============================================================================
# PRODUCTION ORDER SCHEMAS
# ============================================================================

class ProductionOrderCreate(BaseCreateSchema):
    po_number: str = Field(..., min_length=1, max_length=50)
    lot_number: Optional[str] = Field(None, max_length=50)
    po_quantity: int = Field(..., gt=0)
    item_name: Optional[str] = Field(None, max_length=200)


class ProductionOrderUpdate(BaseUpdateSchema):
    lot_number: Optional[str] = Field(None, max_length=50)
    po_quantity: Optional[int] = Field(None, gt=0)
    item_name: Optional[str] = Field(None, max_length=200)


class ProductionOrderResponse(BaseResponseSchema):
    id: UUID
    po_number: str
    lot_number: Optional[str] = None
    po_quantity: int
    item_name: Optional[str] = None
    status: str
    current_operation: Optional[str] = None
    current_operation_start_time: Optional[datetime] = None
    current_operation_end_time: Optional[datetime] = None
    editing_user_id: Optional[UUID] = None
    editing_user_name: Optional[str] = None
    locked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ProductionOrderDetail(ProductionOrderResponse):
    operations: List[OperationResponse] = []
    lock: Optional[LockStatus] = None


class ProductionOrderListResponse(BaseModel):
    items: List[ProductionOrderResponse]
    total: int
    skip: int
    limit: int


class ProductionOrderExists(BaseModel):
    po_number: str
    exists: bool
