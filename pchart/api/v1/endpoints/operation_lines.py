"""Operation line endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.production import (
    OperationLineCreate, OperationLineResponse, OperationLineListResponse,
)
from pchart.services.operation_line_service import OperationLineService


router = APIRouter()


@router.get("", response_model=OperationLineListResponse)
async def list_operation_lines(
    db: DB,
    actor: CurrentActor,
    operation: Optional[str] = Query(None, description="Operation code, matched case-insensitively"),
):
    lines = await OperationLineService(db).list_lines(operation)
    return OperationLineListResponse(
        operation=operation.strip().upper() if operation else None,
        lines=[line.line_number for line in lines],
        items=[OperationLineResponse.model_validate(line) for line in lines],
    )


@router.post("", response_model=OperationLineResponse, status_code=status.HTTP_201_CREATED)
async def create_operation_line(data: OperationLineCreate, db: DB, actor: CurrentActor):
    return await OperationLineService(db).create(data, actor)


@router.delete("/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_operation_line(line_id: uuid.UUID, db: DB, actor: CurrentActor):
    await OperationLineService(db).delete(line_id, actor)
