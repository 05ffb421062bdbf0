"""
Defect Schemas - master catalog and per-operation ledger entries.
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from pchart.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ============================================================================
# QUANTITIES
# ============================================================================

class DefectQuantities(BaseModel):
    """
    Quantity fields of one defect entry.

    quantity may be omitted and is then rework + nogood. quantity_replacement
    is only kept on the first operation of the sequence.
    """
    quantity: Optional[int] = Field(None, ge=0)
    quantity_rework: int = Field(0, ge=0)
    quantity_nogood: int = Field(0, ge=0)
    quantity_replacement: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_balanced(self):
        total = self.quantity_rework + self.quantity_nogood
        if self.quantity is None:
            self.quantity = total
        elif self.quantity != total:
            raise ValueError(
                f"quantity ({self.quantity}) must equal quantity_rework "
                f"({self.quantity_rework}) + quantity_nogood ({self.quantity_nogood})"
            )
        return self


class DefectEntry(DefectQuantities):
    """One entry of a ledger write or completion snapshot."""
    defect_id: UUID


# ============================================================================
# MASTER DEFECT SCHEMAS
# ============================================================================

class MasterDefectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    applicable_operation: Optional[str] = Field(None, max_length=20)
    reworkable: bool = False
    machine: Optional[str] = Field(None, max_length=100)


class MasterDefectCreate(MasterDefectBase):
    pass


class MasterDefectUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    applicable_operation: Optional[str] = Field(None, max_length=20)
    reworkable: Optional[bool] = None
    machine: Optional[str] = Field(None, max_length=100)


class MasterDefectResponse(MasterDefectBase):
    id: UUID
    is_active: bool
    deactivated_at: Optional[datetime] = None
    deactivated_by_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class MasterDefectListResponse(BaseModel):
    items: List[MasterDefectResponse]
    total: int
    skip: int
    limit: int


# ============================================================================
# OPERATION DEFECT SCHEMAS
# ============================================================================

class OperationDefectWrite(BaseCreateSchema):
    """Direct write of one ledger entry on a started operation."""
    po_number: str = Field(..., min_length=1)
    operation_code: str = Field(..., min_length=1)
    defect: DefectEntry


class OperationDefectResponse(BaseResponseSchema):
    id: UUID
    operation_id: UUID
    defect_id: UUID
    defect_name: Optional[str] = None
    defect_category: Optional[str] = None
    defect_machine: Optional[str] = None
    defect_reworkable: bool = False
    quantity: int
    quantity_rework: int
    quantity_nogood: int
    quantity_replacement: int
    recorded_by_id: Optional[UUID] = None
    recorded_at: datetime


class OperationDefectListResponse(BaseModel):
    items: List[OperationDefectResponse]
    total: int
