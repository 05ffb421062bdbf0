"""Master defect catalog endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.defect import (
    MasterDefectCreate, MasterDefectUpdate, MasterDefectResponse, MasterDefectListResponse,
)
from pchart.services.master_defect_service import MasterDefectService


router = APIRouter()


@router.get("", response_model=MasterDefectListResponse)
async def list_master_defects(
    db: DB,
    actor: CurrentActor,
    category: Optional[str] = Query(None),
    applicable_operation: Optional[str] = Query(None, description="Includes defects that apply to all operations"),
    is_active: Optional[bool] = Query(True),
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    defects, total = await MasterDefectService(db).list_defects(
        category=category,
        applicable_operation=applicable_operation,
        is_active=is_active,
        search=search,
        skip=skip,
        limit=limit,
    )
    return MasterDefectListResponse(
        items=[MasterDefectResponse.model_validate(d) for d in defects],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{defect_id}", response_model=MasterDefectResponse)
async def get_master_defect(defect_id: uuid.UUID, db: DB, actor: CurrentActor):
    return await MasterDefectService(db).get(defect_id)


@router.post("", response_model=MasterDefectResponse, status_code=status.HTTP_201_CREATED)
async def create_master_defect(data: MasterDefectCreate, db: DB, actor: CurrentActor):
    return await MasterDefectService(db).create(data, actor)


@router.patch("/{defect_id}", response_model=MasterDefectResponse)
async def update_master_defect(defect_id: uuid.UUID, data: MasterDefectUpdate, db: DB, actor: CurrentActor):
    return await MasterDefectService(db).update(defect_id, data, actor)


@router.post("/{defect_id}/deactivate", response_model=MasterDefectResponse)
async def deactivate_master_defect(defect_id: uuid.UUID, db: DB, actor: CurrentActor):
    """Soft-delete. Existing ledger entries keep their copied defect details."""
    return await MasterDefectService(db).set_active(defect_id, False, actor)


@router.post("/{defect_id}/activate", response_model=MasterDefectResponse)
async def activate_master_defect(defect_id: uuid.UUID, db: DB, actor: CurrentActor):
    return await MasterDefectService(db).set_active(defect_id, True, actor)
