"""
Defect Edit Request Service.

Non-admin users propose add/edit/delete changes to the ledger of a completed
operation. An admin resolves each request exactly once:

    pending -> approved | rejected

Approval mutates the ledger entry only. The operation's stored output
quantity and the inputs of later operations are left as they were recorded
at completion time.
"""
import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.core.events import (
    event_bus, DEFECT_EDIT_REQUESTED, DEFECT_EDIT_RESOLVED, UPDATE_NOTIFICATION_COUNT
)
from pchart.db_types import utcnow
from pchart.models.defect import OperationDefect
from pchart.models.defect_edit_request import DefectEditRequest, EditRequestType, EditRequestStatus
from pchart.models.notification import NotificationType
from pchart.schemas.defect_edit_request import (
    DefectEditRequestCreate, DefectEditRequestUpdate, SORT_FIELDS
)
from pchart.services.audit_service import AuditService
from pchart.services.errors import (
    NotFoundError, InvalidTransitionError, DomainValidationError, PermissionDeniedError
)
from pchart.services.guards import ensure_admin, ensure_not_viewer
from pchart.services.notification_service import NotificationService
from pchart.services.operation_defect_service import OperationDefectService
from pchart.services.production_order_service import ProductionOrderService, is_first_operation
from pchart.services.quantity_cascade import ensure_balanced, effective_replacement


logger = logging.getLogger(__name__)

EDIT_REQUESTS_URL = "/operation-defects-edit-requests"

SORT_COLUMNS = {name: getattr(DefectEditRequest, name) for name in SORT_FIELDS}


class DefectEditRequestService:
    """Service for the defect edit request workflow."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = ProductionOrderService(db)
        self.ledger = OperationDefectService(db)
        self.audit = AuditService(db)
        self.notifications = NotificationService(db)

    async def get(self, request_id: uuid.UUID) -> DefectEditRequest:
        result = await self.db.execute(
            select(DefectEditRequest)
            .where(DefectEditRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Edit request not found", details={"request_id": str(request_id)})
        return request

    # ========================================================================
    # CREATE / AMEND
    # ========================================================================

    async def create(self, data: DefectEditRequestCreate, actor: ActorContext) -> DefectEditRequest:
        """
        File a request against a completed operation.

        The current ledger values are snapshotted for display; add requests
        snapshot zeros.
        """
        ensure_not_viewer(actor, "request defect edits")
        if actor.is_admin:
            raise DomainValidationError("Admins edit completed operations directly")

        request_type = EditRequestType(data.request_type)
        target: Optional[OperationDefect] = None

        if request_type == EditRequestType.ADD:
            if data.operation_id is None or data.defect_id is None:
                raise DomainValidationError(
                    "operation_id and defect_id are required for add requests",
                    details={"request_type": request_type.value}
                )
            operation = await self.ledger.get_operation(data.operation_id)
            master = await self.ledger.get_master_defect(data.defect_id)
            defect_id, defect_name = master.id, master.name
        else:
            if data.operation_defect_id is None:
                raise DomainValidationError(
                    f"operation_defect_id is required for {request_type.value} requests",
                    details={"request_type": request_type.value}
                )
            target = await self.ledger.get(data.operation_defect_id)
            operation = await self.ledger.get_operation(target.operation_id)
            defect_id, defect_name = target.defect_id, target.defect_name

        if not operation.is_completed:
            raise InvalidTransitionError(
                f"Operation {operation.operation} is not completed; edit its defects directly",
                details={"operation": operation.operation, "state": operation.state.value}
            )

        order = await self.orders.get_by_id(operation.production_order_id)
        first = is_first_operation(order, operation)
        requested_replacement = data.requested_replacement
        if requested_replacement is None:
            requested_replacement = target.quantity_replacement if target is not None else 0

        request = DefectEditRequest(
            operation_defect_id=target.id if target is not None else None,
            operation_id=operation.id,
            production_order_id=order.id,
            po_number=order.po_number,
            requested_by_id=actor.user_id,
            requested_by_name=actor.user_name,
            request_type=request_type.value,
            defect_id=defect_id,
            defect_name=defect_name,
            operation_code=operation.operation,
            current_qty=target.quantity if target is not None else 0,
            current_rw=target.quantity_rework if target is not None else 0,
            current_ng=target.quantity_nogood if target is not None else 0,
            current_replacement=target.quantity_replacement if target is not None else 0,
            requested_qty=data.requested_qty,
            requested_rw=data.requested_rw,
            requested_ng=data.requested_ng,
            requested_replacement=effective_replacement(requested_replacement, first),
            reason=data.reason,
            status=EditRequestStatus.PENDING.value,
        )
        self.db.add(request)
        await self.db.flush()

        await self.notifications.notify_admins(
            notification_type=NotificationType.DEFECT_EDIT.value,
            title="Defect edit request",
            message=(
                f"{actor.user_name} requested to {request_type.value} {defect_name} "
                f"on {operation.operation} of {order.po_number}: {request.reason}"
            ),
            entity_type="defect_edit_request",
            entity_id=request.id,
            action_url=EDIT_REQUESTS_URL,
        )
        await self.audit.log(
            action="REQUEST_DEFECT_EDIT",
            entity_type="DEFECT_EDIT_REQUEST",
            entity_id=request.id,
            user_id=actor.user_id,
            new_values={
                "request_type": request_type.value,
                "po_number": order.po_number,
                "operation": operation.operation,
                "defect_name": defect_name,
                "requested_qty": request.requested_qty,
                "requested_rw": request.requested_rw,
                "requested_ng": request.requested_ng,
            },
            description=f"{request_type.value} request for {defect_name} on {operation.operation} of {order.po_number}",
        )
        await self.db.commit()

        logger.info(
            f"Edit request {request.id} ({request_type.value}) filed by {actor.user_name} "
            f"for {defect_name} on {operation.operation}/{order.po_number}"
        )
        event_bus.emit(DEFECT_EDIT_REQUESTED, {
            "request_id": str(request.id),
            "po_number": order.po_number,
            "operation": operation.operation,
            "request_type": request_type.value,
        })
        event_bus.emit(UPDATE_NOTIFICATION_COUNT, {"audience": "admin"})
        return await self.get(request.id)

    async def update(
        self,
        request_id: uuid.UUID,
        data: DefectEditRequestUpdate,
        actor: ActorContext,
    ) -> DefectEditRequest:
        """Let the requester amend a request that is still pending."""
        request = await self.get(request_id)
        if request.requested_by_id != actor.user_id:
            raise PermissionDeniedError("Only the requester can amend an edit request")
        if not request.is_pending:
            raise InvalidTransitionError(
                f"Edit request is already {request.status}",
                details={"status": request.status}
            )

        # explicit nulls mean "unchanged"
        changes = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        if request.request_type != EditRequestType.DELETE.value:
            rw = changes.get("requested_rw", request.requested_rw)
            ng = changes.get("requested_ng", request.requested_ng)
            qty = changes.get("requested_qty")
            if qty is None:
                qty = rw + ng
            replacement = changes.get("requested_replacement", request.requested_replacement)
            operation = await self.ledger.get_operation(request.operation_id)
            order = await self.orders.get_by_id(request.production_order_id)
            replacement = effective_replacement(replacement, is_first_operation(order, operation))
            ensure_balanced(qty, rw, ng, replacement)
            request.requested_qty = qty
            request.requested_rw = rw
            request.requested_ng = ng
            request.requested_replacement = replacement
        if changes.get("reason"):
            request.reason = changes["reason"]

        await self.db.commit()
        logger.info(f"Edit request {request.id} amended by {actor.user_name}")
        return await self.get(request.id)

    # ========================================================================
    # RESOLVE
    # ========================================================================

    async def resolve(
        self,
        request_id: uuid.UUID,
        status: str,
        actor: ActorContext,
        comments: Optional[str] = None,
    ) -> DefectEditRequest:
        """
        Approve or reject a pending request.

        The status change is a conditional UPDATE on status='pending', so a
        second resolution of the same request fails and the ledger is
        mutated at most once.
        """
        ensure_admin(actor, "resolve edit requests")
        decision = EditRequestStatus(status)
        if decision == EditRequestStatus.PENDING:
            raise DomainValidationError("Resolution status must be approved or rejected")

        result = await self.db.execute(
            update(DefectEditRequest)
            .where(DefectEditRequest.id == request_id)
            .where(DefectEditRequest.status == EditRequestStatus.PENDING.value)
            .values(
                status=decision.value,
                resolved_by_id=actor.user_id,
                resolution_note=comments,
                resolved_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            existing = await self.get(request_id)
            raise InvalidTransitionError(
                f"Edit request is already {existing.status}",
                details={"request_id": str(request_id), "status": existing.status}
            )

        request = await self.get(request_id)
        if decision == EditRequestStatus.APPROVED:
            await self._apply(request, actor)

        if request.requested_by_id is not None:
            await self.notifications.create(
                user_id=request.requested_by_id,
                notification_type=NotificationType.DEFECT_EDIT_RESOLVED.value,
                title=f"Defect edit request {decision.value}",
                message=(
                    f"Your {request.request_type} request for {request.defect_name} on "
                    f"{request.operation_code} of {request.po_number} was {decision.value}"
                    + (f": {comments}" if comments else "")
                ),
                entity_type="defect_edit_request",
                entity_id=request.id,
                action_url=EDIT_REQUESTS_URL,
            )

        await self.audit.log(
            action="RESOLVE_DEFECT_EDIT",
            entity_type="DEFECT_EDIT_REQUEST",
            entity_id=request.id,
            user_id=actor.user_id,
            old_values={"status": EditRequestStatus.PENDING.value},
            new_values={"status": decision.value, "resolution_note": comments},
            description=f"{decision.value.capitalize()} {request.request_type} request for {request.defect_name}",
        )
        await self.db.commit()

        logger.info(f"Edit request {request.id} {decision.value} by {actor.user_name}")
        event_bus.emit(DEFECT_EDIT_RESOLVED, {
            "request_id": str(request.id),
            "status": decision.value,
            "po_number": request.po_number,
            "operation": request.operation_code,
            "requested_by_id": str(request.requested_by_id) if request.requested_by_id else None,
        })
        event_bus.emit(UPDATE_NOTIFICATION_COUNT, {
            "user_id": str(request.requested_by_id) if request.requested_by_id else None,
        })
        return await self.get(request.id)

    async def _apply(self, request: DefectEditRequest, actor: ActorContext) -> OperationDefect:
        """Mutate the ledger for an approved request."""
        request_type = EditRequestType(request.request_type)

        if request_type == EditRequestType.ADD:
            if request.defect_id is None:
                raise NotFoundError("Master defect of the request no longer exists")
            master = await self.ledger.get_master_defect(request.defect_id)
            existing = await self.db.execute(
                select(OperationDefect)
                .where(OperationDefect.operation_id == request.operation_id)
                .where(OperationDefect.defect_id == master.id)
            )
            record = existing.scalar_one_or_none()
            if record is None:
                record = OperationDefect(
                    operation_id=request.operation_id,
                    defect_id=master.id,
                    defect_name=master.name,
                    defect_category=master.category,
                    defect_machine=master.machine,
                    defect_reworkable=master.reworkable,
                )
                self.db.add(record)
        else:
            if request.operation_defect_id is None:
                raise NotFoundError("Target operation defect no longer exists")
            record = await self.ledger.get(request.operation_defect_id)

        if request_type == EditRequestType.DELETE:
            qty, rw, ng, replacement = 0, 0, 0, 0
        else:
            qty = request.requested_qty
            rw = request.requested_rw
            ng = request.requested_ng
            replacement = request.requested_replacement
        ensure_balanced(qty, rw, ng, replacement)

        record.quantity = qty
        record.quantity_rework = rw
        record.quantity_nogood = ng
        record.quantity_replacement = replacement
        record.recorded_by_id = actor.user_id
        record.recorded_at = utcnow()
        await self.db.flush()

        if request.operation_defect_id is None:
            request.operation_defect_id = record.id
        return record

    # ========================================================================
    # LIST / COUNT
    # ========================================================================

    async def list_requests(
        self,
        status: str = EditRequestStatus.PENDING.value,
        sort_field: str = "created_at",
        sort_direction: str = "desc",
        operation_id: Optional[uuid.UUID] = None,
        operation_defect_id: Optional[uuid.UUID] = None,
        request_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[DefectEditRequest], int]:
        """List requests; status 'all' disables the status filter."""
        if sort_field not in SORT_COLUMNS:
            raise DomainValidationError(
                f"Unsupported sort field: {sort_field}",
                details={"sort_field": sort_field, "supported": list(SORT_FIELDS)}
            )

        query = select(DefectEditRequest)
        if status and status != "all":
            query = query.where(DefectEditRequest.status == status)
        if operation_id:
            query = query.where(DefectEditRequest.operation_id == operation_id)
        if operation_defect_id:
            query = query.where(DefectEditRequest.operation_defect_id == operation_defect_id)
        if request_type:
            query = query.where(DefectEditRequest.request_type == request_type)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        column = SORT_COLUMNS[sort_field]
        order = column.asc() if sort_direction == "asc" else column.desc()
        query = query.order_by(order, DefectEditRequest.id).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def count(self, status: str = EditRequestStatus.PENDING.value) -> int:
        query = select(func.count(DefectEditRequest.id))
        if status and status != "all":
            query = query.where(DefectEditRequest.status == status)
        return (await self.db.execute(query)).scalar() or 0
