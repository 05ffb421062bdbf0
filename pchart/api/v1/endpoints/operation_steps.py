"""Operation step endpoints."""
from typing import List

from fastapi import APIRouter, status

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.production import OperationStepCreate, OperationStepResponse
from pchart.services.operation_step_service import OperationStepService


router = APIRouter()


@router.get("", response_model=List[OperationStepResponse])
async def list_operation_steps(db: DB, actor: CurrentActor):
    """Configured operation sequence in step order."""
    return await OperationStepService(db).list_steps()


@router.post("", response_model=OperationStepResponse, status_code=status.HTTP_201_CREATED)
async def create_operation_step(data: OperationStepCreate, db: DB, actor: CurrentActor):
    return await OperationStepService(db).create(data, actor)
