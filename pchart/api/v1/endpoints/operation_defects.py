"""Per-operation defect ledger endpoints."""
import uuid

from fastapi import APIRouter, status

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.defect import (
    OperationDefectWrite, OperationDefectResponse, OperationDefectListResponse,
)
from pchart.services.operation_defect_service import OperationDefectService


router = APIRouter()


@router.post("", response_model=OperationDefectResponse)
async def record_operation_defect(data: OperationDefectWrite, db: DB, actor: CurrentActor):
    """
    Create or overwrite one ledger entry.

    Allowed on started operations. Completed operations accept direct writes
    from admins only; other roles submit an edit request.
    """
    return await OperationDefectService(db).record(
        data.po_number, data.operation_code, data.defect, actor
    )


@router.delete("/{operation_defect_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_operation_defect(operation_defect_id: uuid.UUID, db: DB, actor: CurrentActor):
    await OperationDefectService(db).delete(operation_defect_id, actor)


@router.get("/operation/{operation_id}", response_model=OperationDefectListResponse)
async def list_operation_defects(operation_id: uuid.UUID, db: DB, actor: CurrentActor):
    records = await OperationDefectService(db).list_for_operation(operation_id)
    return OperationDefectListResponse(
        items=[OperationDefectResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/order/{po_number}", response_model=OperationDefectListResponse)
async def list_order_defects(po_number: str, db: DB, actor: CurrentActor):
    records = await OperationDefectService(db).list_for_order(po_number)
    return OperationDefectListResponse(
        items=[OperationDefectResponse.model_validate(r) for r in records],
        total=len(records),
    )
