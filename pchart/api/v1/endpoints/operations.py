"""Operation start/complete endpoints."""
from typing import List

from fastapi import APIRouter

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.production import (
    StartOperationRequest, CompleteOperationRequest, CompletionResult, OperationResponse,
)
from pchart.services.operation_service import OperationService


router = APIRouter()


@router.post("/start", response_model=OperationResponse)
async def start_operation(data: StartOperationRequest, db: DB, actor: CurrentActor):
    """Start the order's current operation once its predecessor is completed."""
    return await OperationService(db).start(data.po_number, data.operation_code, actor)


@router.post("/complete", response_model=CompletionResult)
async def complete_operation(data: CompleteOperationRequest, db: DB, actor: CurrentActor):
    """
    Complete a started operation.

    Persists the defect snapshot, computes the output quantity, hands it to
    the next operation and starts that operation automatically.
    """
    return await OperationService(db).complete(
        data.po_number,
        data.operation_code,
        actor,
        line_no=data.line_no,
        rf=data.rf,
        defects=data.defects,
        timestamp=data.timestamp,
    )


@router.get("/{po_number}", response_model=List[OperationResponse])
async def list_order_operations(po_number: str, db: DB, actor: CurrentActor):
    return await OperationService(db).get_order_operations(po_number)
