"""Defect edit request endpoints."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from pchart.api.deps import DB, CurrentActor
from pchart.models.defect_edit_request import EditRequestType
from pchart.schemas.defect_edit_request import (
    DefectEditRequestCreate, DefectEditRequestUpdate, DefectEditRequestResolve,
    DefectEditRequestResponse, DefectEditRequestListResponse, DefectEditRequestCount,
    StatusFilter, SortDirection,
)
from pchart.services.defect_edit_request_service import DefectEditRequestService


router = APIRouter()


@router.post("", response_model=DefectEditRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_edit_request(data: DefectEditRequestCreate, db: DB, actor: CurrentActor):
    """
    Request a change to the ledger of a completed operation.

    Admins are notified. Admins write completed ledgers directly and cannot
    file requests themselves.
    """
    return await DefectEditRequestService(db).create(data, actor)


@router.get("", response_model=DefectEditRequestListResponse)
async def list_edit_requests(
    db: DB,
    actor: CurrentActor,
    status_filter: StatusFilter = Query("pending", alias="status"),
    sort_field: str = Query("created_at", alias="sortField"),
    sort_direction: SortDirection = Query("desc", alias="sortDirection"),
    operation_id: Optional[uuid.UUID] = Query(None),
    operation_defect_id: Optional[uuid.UUID] = Query(None),
    request_type: Optional[EditRequestType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    requests, total = await DefectEditRequestService(db).list_requests(
        status=status_filter,
        sort_field=sort_field,
        sort_direction=sort_direction,
        operation_id=operation_id,
        operation_defect_id=operation_defect_id,
        request_type=request_type.value if request_type else None,
        skip=skip,
        limit=limit,
    )
    return DefectEditRequestListResponse(
        items=[DefectEditRequestResponse.model_validate(r) for r in requests],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/count", response_model=DefectEditRequestCount)
async def count_edit_requests(
    db: DB,
    actor: CurrentActor,
    status_filter: StatusFilter = Query("pending", alias="status"),
):
    count = await DefectEditRequestService(db).count(status_filter)
    return DefectEditRequestCount(status=status_filter, count=count)


@router.get("/{request_id}", response_model=DefectEditRequestResponse)
async def get_edit_request(request_id: uuid.UUID, db: DB, actor: CurrentActor):
    return await DefectEditRequestService(db).get(request_id)


@router.patch("/{request_id}", response_model=DefectEditRequestResponse)
async def update_edit_request(
    request_id: uuid.UUID,
    data: DefectEditRequestUpdate,
    db: DB,
    actor: CurrentActor,
):
    """Amend a pending request (requester only)."""
    return await DefectEditRequestService(db).update(request_id, data, actor)


@router.put("/{request_id}/resolve", response_model=DefectEditRequestResponse)
async def resolve_edit_request(
    request_id: uuid.UUID,
    data: DefectEditRequestResolve,
    db: DB,
    actor: CurrentActor,
):
    """
    Approve or reject a pending request (admin only).

    Approval applies the requested quantities to the ledger. Resolving a
    request that is no longer pending returns 409.
    """
    return await DefectEditRequestService(db).resolve(
        request_id, data.status, actor, comments=data.comments
    )
