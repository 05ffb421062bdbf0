"""Standard cost endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.standard_cost import (
    StandardCostCreate, StandardCostUpdate, StandardCostResponse, StandardCostListResponse,
)
from pchart.services.standard_cost_service import StandardCostService


router = APIRouter()


@router.get("", response_model=StandardCostListResponse)
async def list_standard_costs(
    db: DB,
    actor: CurrentActor,
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    costs, total = await StandardCostService(db).list_costs(
        is_active=is_active, search=search, skip=skip, limit=limit
    )
    return StandardCostListResponse(
        items=[StandardCostResponse.model_validate(c) for c in costs],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{cost_id}", response_model=StandardCostResponse)
async def get_standard_cost(cost_id: uuid.UUID, db: DB, actor: CurrentActor):
    return await StandardCostService(db).get(cost_id)


@router.post("", response_model=StandardCostResponse, status_code=status.HTTP_201_CREATED)
async def create_standard_cost(data: StandardCostCreate, db: DB, actor: CurrentActor):
    return await StandardCostService(db).create(data, actor)


@router.patch("/{cost_id}", response_model=StandardCostResponse)
async def update_standard_cost(cost_id: uuid.UUID, data: StandardCostUpdate, db: DB, actor: CurrentActor):
    return await StandardCostService(db).update(cost_id, data, actor)


@router.post("/{cost_id}/deactivate", response_model=StandardCostResponse)
async def deactivate_standard_cost(cost_id: uuid.UUID, db: DB, actor: CurrentActor):
    return await StandardCostService(db).set_active(cost_id, False, actor)


@router.post("/{cost_id}/activate", response_model=StandardCostResponse)
async def activate_standard_cost(cost_id: uuid.UUID, db: DB, actor: CurrentActor):
    return await StandardCostService(db).set_active(cost_id, True, actor)
