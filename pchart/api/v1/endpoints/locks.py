"""
Edit lock endpoints.

A lock is keyed by (resource_type, resource_id); the only resource type is
'productionOrder' and the resource id is the PO number.
"""
from fastapi import APIRouter, Query

from pchart.api.deps import DB, CurrentActor
from pchart.schemas.lock import LockRequest, LockResult, LockStatus, PRODUCTION_ORDER_RESOURCE
from pchart.services.lock_service import LockService


router = APIRouter()


@router.post("/acquire", response_model=LockResult)
async def acquire_lock(data: LockRequest, db: DB, actor: CurrentActor):
    """
    Take the edit lock.

    Returns 423 with the holder's lock_info when another user holds it.
    Viewers get a read-only result and never take the lock.
    """
    return await LockService(db).acquire(data.resource_id, actor, data.resource_type)


@router.post("/release", response_model=LockResult)
async def release_lock(data: LockRequest, db: DB, actor: CurrentActor):
    return await LockService(db).release(data.resource_id, actor, data.resource_type)


@router.post("/force-release", response_model=LockResult)
async def force_release_lock(data: LockRequest, db: DB, actor: CurrentActor):
    """Admin-only release of someone else's (or an orphaned) lock."""
    return await LockService(db).force_release(data.resource_id, actor, data.resource_type)


@router.get("/status", response_model=LockStatus)
async def get_lock_status(
    db: DB,
    actor: CurrentActor,
    resource_id: str = Query(..., min_length=1),
    resource_type: str = Query(PRODUCTION_ORDER_RESOURCE),
):
    return await LockService(db).status(resource_id, actor, resource_type)
