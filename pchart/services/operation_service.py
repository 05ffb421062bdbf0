"""
Operation Service - start/complete transitions of production order operations.

States per operation: not_started -> started -> completed. Completion persists
the defect snapshot, computes the output quantity, hands it to the next
operation as input and auto-starts that operation, all in one transaction.
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.core.events import event_bus, OPERATION_STARTED, OPERATION_COMPLETED
from pchart.db_types import utcnow
from pchart.models.defect import MasterDefect, OperationDefect
from pchart.models.production import ProductionOrder, ProductionOrderStatus, Operation
from pchart.schemas.defect import DefectEntry
from pchart.schemas.production import CompletionResult, OperationResponse
from pchart.services.audit_service import AuditService
from pchart.services.errors import (
    PChartError, InvalidTransitionError, DomainValidationError, NotFoundError
)
from pchart.services.guards import ensure_not_viewer
from pchart.services.lock_service import LockService
from pchart.services.operation_line_service import OperationLineService
from pchart.services.production_order_service import (
    ProductionOrderService, find_operation, previous_operation, next_operation,
    is_first_operation,
)
from pchart.services.quantity_cascade import (
    compute_output_quantity, ensure_balanced, effective_replacement
)


logger = logging.getLogger(__name__)


class OperationService:
    """Service for operation state transitions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = ProductionOrderService(db)
        self.locks = LockService(db)
        self.lines = OperationLineService(db)
        self.audit = AuditService(db)

    async def get_order_operations(self, po_number: str) -> List[Operation]:
        """Operations of an order in step order, with their defect ledgers."""
        order = await self.orders.get_by_po_number(po_number)
        return sorted(order.operations, key=lambda op: op.step_order)

    # ========================================================================
    # START
    # ========================================================================

    async def start(self, po_number: str, operation_code: str, actor: ActorContext) -> Operation:
        """
        Start the order's current operation.

        The predecessor must be completed; its output becomes this
        operation's input (the PO quantity for the first operation).
        """
        ensure_not_viewer(actor, "start operations")
        order = await self.orders.get_by_po_number(po_number)
        operation = find_operation(order, operation_code)
        await self.locks.ensure_can_mutate(order, actor)

        await self._apply_start(order, operation, actor, utcnow())
        await self.db.commit()

        order = await self.orders.get_by_po_number(po_number)
        operation = find_operation(order, operation_code)
        logger.info(
            f"Operation {operation.operation} of {po_number} started by {actor.user_name} "
            f"with input {operation.input_quantity}"
        )
        self._emit_started(order, operation, actor)
        return operation

    async def _apply_start(
        self,
        order: ProductionOrder,
        operation: Operation,
        actor: ActorContext,
        now: datetime,
    ) -> None:
        """Validate and apply a start without committing."""
        if operation.start_time is not None:
            raise InvalidTransitionError(
                f"Operation {operation.operation} has already been started",
                details={"operation": operation.operation, "state": operation.state.value}
            )

        current = (order.current_operation or "").upper()
        if current != operation.operation.upper():
            raise InvalidTransitionError(
                f"Operation {operation.operation} is not the current operation ({order.current_operation})",
                details={"operation": operation.operation, "current_operation": order.current_operation}
            )

        predecessor = previous_operation(order, operation)
        if predecessor is not None and not predecessor.is_completed:
            raise InvalidTransitionError(
                f"Previous operation {predecessor.operation} is not completed",
                details={"operation": operation.operation, "previous_operation": predecessor.operation}
            )

        input_quantity = predecessor.output_quantity if predecessor is not None else order.po_quantity

        # Conditional on start_time so a concurrent start cannot count twice
        result = await self.db.execute(
            update(Operation)
            .where(Operation.id == operation.id)
            .where(Operation.start_time.is_(None))
            .values(
                start_time=now,
                operator_id=actor.user_id,
                input_quantity=input_quantity,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                f"Operation {operation.operation} has already been started",
                details={"operation": operation.operation}
            )

        if order.status == ProductionOrderStatus.PENDING.value:
            order.status = ProductionOrderStatus.IN_PROGRESS.value
        order.current_operation = operation.operation
        order.current_operation_start_time = now
        order.current_operation_end_time = None

        await self.audit.log(
            action="START_OPERATION",
            entity_type="OPERATION",
            entity_id=operation.id,
            user_id=actor.user_id,
            new_values={
                "po_number": order.po_number,
                "operation": operation.operation,
                "input_quantity": input_quantity,
                "start_time": now,
            },
            description=f"Started {operation.operation} on {order.po_number}",
        )

    # ========================================================================
    # COMPLETE
    # ========================================================================

    async def complete(
        self,
        po_number: str,
        operation_code: str,
        actor: ActorContext,
        line_no: Optional[str],
        rf: Optional[int] = None,
        defects: Optional[List[DefectEntry]] = None,
        timestamp: Optional[datetime] = None,
    ) -> CompletionResult:
        """
        Complete a started operation.

        Nothing is written when validation fails. Auto-start of the next
        operation runs in a savepoint; its failure is reported in warnings
        and does not undo the completion.
        """
        if line_no is None or not line_no.strip():
            raise DomainValidationError(
                "Line number is required to complete an operation",
                details={"field": "line_no"}
            )
        ensure_not_viewer(actor, "complete operations")

        order = await self.orders.get_by_po_number(po_number)
        operation = find_operation(order, operation_code)
        await self.locks.ensure_can_mutate(order, actor)

        if operation.start_time is None:
            raise InvalidTransitionError(
                f"Operation {operation.operation} has not been started",
                details={"operation": operation.operation, "state": operation.state.value}
            )
        if operation.is_completed:
            raise InvalidTransitionError(
                f"Operation {operation.operation} is already completed",
                details={"operation": operation.operation, "state": operation.state.value}
            )
        await self.lines.ensure_allowed(operation.operation, line_no)

        first = is_first_operation(order, operation)
        ledger = await self._upsert_snapshot(operation, defects or [], actor, first)

        output_quantity = compute_output_quantity(operation.input_quantity, ledger, first)
        end_time = timestamp or utcnow()
        resource_factor = rf if rf is not None else 1

        result = await self.db.execute(
            update(Operation)
            .where(Operation.id == operation.id)
            .where(Operation.end_time.is_(None))
            .values(
                end_time=end_time,
                output_quantity=output_quantity,
                rf=resource_factor,
                line_no=line_no.strip(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(
                f"Operation {operation.operation} is already completed",
                details={"operation": operation.operation}
            )

        following = next_operation(order, operation)
        following_code = following.operation if following is not None else None
        if following is not None:
            following.input_quantity = output_quantity
            order.current_operation = following.operation
            order.current_operation_start_time = None
            order.current_operation_end_time = None
        else:
            order.status = ProductionOrderStatus.COMPLETED.value
            order.current_operation_end_time = end_time

        await self.audit.log(
            action="COMPLETE_OPERATION",
            entity_type="OPERATION",
            entity_id=operation.id,
            user_id=actor.user_id,
            old_values={"input_quantity": operation.input_quantity},
            new_values={
                "po_number": order.po_number,
                "operation": operation.operation,
                "output_quantity": output_quantity,
                "line_no": line_no.strip(),
                "rf": resource_factor,
                "defects": len(ledger),
                "end_time": end_time,
            },
            description=f"Completed {operation.operation} on {order.po_number} with output {output_quantity}",
        )
        await self.db.flush()

        warnings: List[str] = []
        next_started = False
        if following is not None:
            # Predecessor is read by the start checks; reflect the completion in memory
            operation.end_time = end_time
            operation.output_quantity = output_quantity
            try:
                async with self.db.begin_nested():
                    await self._apply_start(order, following, actor, utcnow())
                next_started = True
            except (PChartError, SQLAlchemyError) as e:
                message = getattr(e, "message", str(e))
                warnings.append(f"Operation {following_code} could not be started automatically: {message}")
                logger.warning(f"Auto-start of {following_code} on {po_number} failed: {message}")

        await self.db.commit()

        order = await self.orders.get_by_po_number(po_number)
        operation = find_operation(order, operation_code)
        logger.info(
            f"Operation {operation.operation} of {po_number} completed by {actor.user_name}: "
            f"input {operation.input_quantity}, output {output_quantity}"
        )

        event_bus.emit(OPERATION_COMPLETED, {
            "po_number": po_number,
            "operation": operation.operation,
            "output_quantity": output_quantity,
            "next_operation": following_code,
            "order_completed": following_code is None,
            "user_id": str(actor.user_id),
        })
        if next_started:
            self._emit_started(order, find_operation(order, following_code), actor)

        return CompletionResult(
            operation=OperationResponse.model_validate(operation),
            output_quantity=output_quantity,
            next_operation=following_code,
            next_operation_started=next_started,
            order_completed=following_code is None,
            warnings=warnings,
        )

    async def _upsert_snapshot(
        self,
        operation: Operation,
        entries: List[DefectEntry],
        actor: ActorContext,
        first: bool,
    ) -> List[OperationDefect]:
        """Write every snapshot entry, zero-quantity ones included. Returns the whole ledger."""
        existing: Dict[uuid.UUID, OperationDefect] = {d.defect_id: d for d in operation.defects}

        defect_ids = {entry.defect_id for entry in entries}
        masters: Dict[uuid.UUID, MasterDefect] = {}
        if defect_ids:
            result = await self.db.execute(select(MasterDefect).where(MasterDefect.id.in_(defect_ids)))
            masters = {m.id: m for m in result.scalars().all()}
        missing = defect_ids - set(masters)
        if missing:
            raise NotFoundError(
                "Unknown defect ids in completion snapshot",
                details={"defect_ids": sorted(str(m) for m in missing)}
            )

        now = utcnow()
        for entry in entries:
            replacement = effective_replacement(entry.quantity_replacement, first)
            ensure_balanced(entry.quantity, entry.quantity_rework, entry.quantity_nogood, replacement)
            master = masters[entry.defect_id]

            record = existing.get(entry.defect_id)
            if record is None:
                record = OperationDefect(
                    operation_id=operation.id,
                    defect_id=master.id,
                    defect_name=master.name,
                    defect_category=master.category,
                    defect_machine=master.machine,
                    defect_reworkable=master.reworkable,
                )
                self.db.add(record)
                existing[entry.defect_id] = record
            record.quantity = entry.quantity
            record.quantity_rework = entry.quantity_rework
            record.quantity_nogood = entry.quantity_nogood
            record.quantity_replacement = replacement
            record.recorded_by_id = actor.user_id
            record.recorded_at = now

        await self.db.flush()
        return list(existing.values())

    def _emit_started(self, order: ProductionOrder, operation: Operation, actor: ActorContext) -> None:
        event_bus.emit(OPERATION_STARTED, {
            "po_number": order.po_number,
            "operation": operation.operation,
            "input_quantity": operation.input_quantity,
            "user_id": str(actor.user_id),
        })
