"""Audit log endpoints (admin only)."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query

from pchart.api.deps import DB, AdminActor
from pchart.schemas.audit_log import AuditLogResponse, AuditLogListResponse
from pchart.services.audit_service import AuditService


router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: DB,
    actor: AdminActor,
    entity_type: Optional[str] = Query(None, description="PRODUCTION_ORDER, OPERATION, OPERATION_DEFECT, ..."),
    entity_id: Optional[uuid.UUID] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None, description="CREATE, UPDATE, DELETE, FORCE_RELEASE_LOCK, ..."),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    logs, total = await AuditService(db).get_logs(
        entity_type=entity_type.upper() if entity_type else None,
        entity_id=entity_id,
        user_id=user_id,
        action=action.upper() if action else None,
        skip=skip,
        limit=limit,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        skip=skip,
        limit=limit,
    )
