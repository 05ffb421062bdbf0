"""
Operation Defect Service - direct writes to an operation's defect ledger.

Direct writes are for started operations. Once an operation is completed
only admins write directly; everyone else goes through an edit request.
The stored output quantity of a completed operation is never recomputed here.
"""
import logging
import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.db_types import utcnow
from pchart.models.defect import MasterDefect, OperationDefect
from pchart.models.production import ProductionOrder, Operation
from pchart.schemas.defect import DefectEntry
from pchart.services.audit_service import AuditService
from pchart.services.errors import NotFoundError, InvalidTransitionError, PermissionDeniedError
from pchart.services.guards import ensure_not_viewer
from pchart.services.lock_service import LockService
from pchart.services.production_order_service import (
    ProductionOrderService, find_operation, is_first_operation
)
from pchart.services.quantity_cascade import ensure_balanced, effective_replacement


logger = logging.getLogger(__name__)


def _snapshot(record: OperationDefect) -> dict:
    return {
        "defect_id": record.defect_id,
        "defect_name": record.defect_name,
        "quantity": record.quantity,
        "quantity_rework": record.quantity_rework,
        "quantity_nogood": record.quantity_nogood,
        "quantity_replacement": record.quantity_replacement,
    }


class OperationDefectService:
    """Service for the per-operation defect ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = ProductionOrderService(db)
        self.locks = LockService(db)
        self.audit = AuditService(db)

    async def get(self, operation_defect_id: uuid.UUID) -> OperationDefect:
        result = await self.db.execute(
            select(OperationDefect)
            .where(OperationDefect.id == operation_defect_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError(
                "Operation defect not found",
                details={"operation_defect_id": str(operation_defect_id)}
            )
        return record

    async def get_operation(self, operation_id: uuid.UUID) -> Operation:
        result = await self.db.execute(select(Operation).where(Operation.id == operation_id))
        operation = result.scalar_one_or_none()
        if operation is None:
            raise NotFoundError("Operation not found", details={"operation_id": str(operation_id)})
        return operation

    async def get_master_defect(self, defect_id: uuid.UUID) -> MasterDefect:
        result = await self.db.execute(select(MasterDefect).where(MasterDefect.id == defect_id))
        master = result.scalar_one_or_none()
        if master is None:
            raise NotFoundError("Master defect not found", details={"defect_id": str(defect_id)})
        if not master.is_active:
            logger.warning(f"Recording inactive master defect {master.name} ({master.id})")
        return master

    def _check_writable(self, operation: Operation, actor: ActorContext) -> None:
        if operation.start_time is None:
            raise InvalidTransitionError(
                f"Operation {operation.operation} has not been started",
                details={"operation": operation.operation, "state": operation.state.value}
            )
        if operation.is_completed and not actor.is_admin:
            raise PermissionDeniedError(
                f"Operation {operation.operation} is completed; submit an edit request instead",
                details={"operation": operation.operation, "state": operation.state.value}
            )

    # ========================================================================
    # WRITE
    # ========================================================================

    async def record(
        self,
        po_number: str,
        operation_code: str,
        entry: DefectEntry,
        actor: ActorContext,
    ) -> OperationDefect:
        """Create or overwrite the ledger entry for (operation, defect)."""
        ensure_not_viewer(actor, "record defects")
        order = await self.orders.get_by_po_number(po_number)
        operation = find_operation(order, operation_code)
        await self.locks.ensure_can_mutate(order, actor)
        self._check_writable(operation, actor)

        master = await self.get_master_defect(entry.defect_id)
        replacement = effective_replacement(entry.quantity_replacement, is_first_operation(order, operation))
        ensure_balanced(entry.quantity, entry.quantity_rework, entry.quantity_nogood, replacement)

        record = next((d for d in operation.defects if d.defect_id == master.id), None)
        old_values = _snapshot(record) if record is not None else None
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

        record.quantity = entry.quantity
        record.quantity_rework = entry.quantity_rework
        record.quantity_nogood = entry.quantity_nogood
        record.quantity_replacement = replacement
        record.recorded_by_id = actor.user_id
        record.recorded_at = utcnow()
        await self.db.flush()

        await self.audit.log(
            action="UPDATE" if old_values else "CREATE",
            entity_type="OPERATION_DEFECT",
            entity_id=record.id,
            user_id=actor.user_id,
            old_values=old_values,
            new_values=_snapshot(record),
            description=f"Recorded {master.name} on {operation.operation} of {po_number}",
        )
        await self.db.commit()
        await self.db.refresh(record)

        logger.info(
            f"Defect {master.name} on {operation.operation}/{po_number} set to "
            f"qty={record.quantity} rw={record.quantity_rework} ng={record.quantity_nogood} by {actor.user_name}"
        )
        return record

    async def delete(self, operation_defect_id: uuid.UUID, actor: ActorContext) -> None:
        """Remove a ledger entry from a started operation."""
        ensure_not_viewer(actor, "delete defects")
        record = await self.get(operation_defect_id)
        operation = await self.get_operation(record.operation_id)
        order = await self.orders.get_by_id(operation.production_order_id)
        await self.locks.ensure_can_mutate(order, actor)
        self._check_writable(operation, actor)

        await self.audit.log(
            action="DELETE",
            entity_type="OPERATION_DEFECT",
            entity_id=record.id,
            user_id=actor.user_id,
            old_values=_snapshot(record),
            description=f"Deleted {record.defect_name} from {operation.operation} of {order.po_number}",
        )
        await self.db.delete(record)
        await self.db.commit()

        logger.info(f"Defect {record.defect_name} removed from {operation.operation}/{order.po_number} by {actor.user_name}")

    # ========================================================================
    # READ
    # ========================================================================

    async def list_for_operation(self, operation_id: uuid.UUID) -> List[OperationDefect]:
        await self.get_operation(operation_id)
        result = await self.db.execute(
            select(OperationDefect)
            .where(OperationDefect.operation_id == operation_id)
            .order_by(OperationDefect.recorded_at)
        )
        return list(result.scalars().all())

    async def list_for_order(self, po_number: str) -> List[OperationDefect]:
        await self.orders.get_by_po_number(po_number)
        result = await self.db.execute(
            select(OperationDefect)
            .join(Operation, Operation.id == OperationDefect.operation_id)
            .join(ProductionOrder, ProductionOrder.id == Operation.production_order_id)
            .where(ProductionOrder.po_number == po_number)
            .order_by(Operation.step_order, OperationDefect.recorded_at)
        )
        return list(result.scalars().all())
