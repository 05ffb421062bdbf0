"""
Production Order Service.

Creates orders with one operation row per configured step and provides the
order/operation lookups the workflow services share.
"""
import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.models.production import (
    OperationStep, ProductionOrder, ProductionOrderStatus, Operation
)
from pchart.schemas.production import ProductionOrderCreate, ProductionOrderUpdate
from pchart.services.audit_service import AuditService
from pchart.services.errors import NotFoundError, DuplicateError, DomainValidationError
from pchart.services.guards import ensure_admin
from pchart.services.quantity_cascade import compute_output_quantity


logger = logging.getLogger(__name__)


# ============================================================================
# SEQUENCE HELPERS
# ============================================================================

def find_operation(order: ProductionOrder, operation_code: str) -> Operation:
    """Operation of the order matching the code, case-insensitively."""
    code = (operation_code or "").strip().upper()
    for operation in order.operations:
        if operation.operation.upper() == code:
            return operation
    raise NotFoundError(
        f"Operation {operation_code} not found for production order {order.po_number}",
        details={"po_number": order.po_number, "operation_code": operation_code}
    )


def ordered_operations(order: ProductionOrder) -> List[Operation]:
    return sorted(order.operations, key=lambda op: op.step_order)


def previous_operation(order: ProductionOrder, operation: Operation) -> Optional[Operation]:
    ops = ordered_operations(order)
    index = next(i for i, op in enumerate(ops) if op.id == operation.id)
    return ops[index - 1] if index > 0 else None


def next_operation(order: ProductionOrder, operation: Operation) -> Optional[Operation]:
    ops = ordered_operations(order)
    index = next(i for i, op in enumerate(ops) if op.id == operation.id)
    return ops[index + 1] if index + 1 < len(ops) else None


def is_first_operation(order: ProductionOrder, operation: Operation) -> bool:
    return previous_operation(order, operation) is None


# ============================================================================
# SERVICE
# ============================================================================

class ProductionOrderService:
    """Service for production order catalog operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get_by_po_number(self, po_number: str) -> ProductionOrder:
        """
        Load an order with its operations and ledgers.

        Always re-reads the rows so callers see changes made through
        conditional UPDATE statements earlier in the same session.
        """
        result = await self.db.execute(
            select(ProductionOrder)
            .where(ProductionOrder.po_number == po_number)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(
                f"Production order {po_number} not found",
                details={"po_number": po_number}
            )
        return order

    async def get_by_id(self, order_id: uuid.UUID) -> ProductionOrder:
        result = await self.db.execute(
            select(ProductionOrder)
            .where(ProductionOrder.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Production order not found", details={"id": str(order_id)})
        return order

    async def exists(self, po_number: str) -> bool:
        result = await self.db.execute(
            select(func.count(ProductionOrder.id)).where(ProductionOrder.po_number == po_number)
        )
        return (result.scalar() or 0) > 0

    async def list_orders(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ProductionOrder], int]:
        """List production orders, newest first."""
        query = select(ProductionOrder)

        if status:
            query = query.where(ProductionOrder.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    ProductionOrder.po_number.ilike(pattern),
                    ProductionOrder.lot_number.ilike(pattern),
                    ProductionOrder.item_name.ilike(pattern),
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(ProductionOrder.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create(self, data: ProductionOrderCreate, actor: ActorContext) -> ProductionOrder:
        """
        Create an order and one operation row per configured step.

        The first step is the current operation and receives the PO quantity
        as input; later steps get their input when their predecessor completes.
        """
        ensure_admin(actor, "create production orders")

        po_number = data.po_number.strip()
        if await self.exists(po_number):
            raise DuplicateError(
                f"Production order {po_number} already exists",
                details={"po_number": po_number}
            )

        steps_result = await self.db.execute(
            select(OperationStep).order_by(OperationStep.step_order)
        )
        steps = list(steps_result.scalars().all())
        if not steps:
            raise DomainValidationError("No operation steps are configured")

        order = ProductionOrder(
            po_number=po_number,
            lot_number=data.lot_number,
            po_quantity=data.po_quantity,
            item_name=data.item_name,
            status=ProductionOrderStatus.PENDING.value,
            current_operation=steps[0].operation_number,
        )
        self.db.add(order)
        await self.db.flush()

        for index, step in enumerate(steps):
            self.db.add(Operation(
                production_order_id=order.id,
                operation=step.operation_number,
                step_order=step.step_order,
                input_quantity=data.po_quantity if index == 0 else 0,
            ))

        await self.audit.log(
            action="CREATE",
            entity_type="PRODUCTION_ORDER",
            entity_id=order.id,
            user_id=actor.user_id,
            new_values={
                "po_number": po_number,
                "po_quantity": data.po_quantity,
                "lot_number": data.lot_number,
                "operations": [s.operation_number for s in steps],
            },
            description=f"Created production order {po_number}",
        )
        await self.db.commit()

        logger.info(f"Production order {po_number} created with {len(steps)} operations by {actor.user_name}")
        return await self.get_by_po_number(po_number)

    async def update(self, po_number: str, data: ProductionOrderUpdate, actor: ActorContext) -> ProductionOrder:
        """
        Update order header fields (admin only).

        A quantity change becomes the first operation's input. Completed
        operations are then recomputed from their ledgers in sequence, each
        output feeding the next operation's input, up to the first operation
        that is not completed.
        """
        from pchart.services.lock_service import LockService

        ensure_admin(actor, "update production orders")
        order = await self.get_by_po_number(po_number)
        await LockService(self.db).ensure_can_mutate(order, actor)

        changes = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        old_values = {key: getattr(order, key) for key in changes}
        for key, value in changes.items():
            setattr(order, key, value)

        recalculated = {}
        if "po_quantity" in changes and changes["po_quantity"] != old_values["po_quantity"]:
            ops = ordered_operations(order)
            if ops:
                ops[0].input_quantity = order.po_quantity
            for index, operation in enumerate(ops):
                if not operation.is_completed:
                    break
                operation.output_quantity = compute_output_quantity(
                    operation.input_quantity, operation.defects, index == 0
                )
                recalculated[operation.operation] = operation.output_quantity
                if index + 1 < len(ops):
                    ops[index + 1].input_quantity = operation.output_quantity

        await self.audit.log(
            action="UPDATE",
            entity_type="PRODUCTION_ORDER",
            entity_id=order.id,
            user_id=actor.user_id,
            old_values=old_values,
            new_values={**changes, "recalculated_outputs": recalculated} if recalculated else changes,
            description=f"Updated production order {order.po_number}",
        )
        await self.db.commit()

        logger.info(
            f"Production order {po_number} updated by {actor.user_name}: {sorted(changes)}"
            + (f", outputs recalculated {recalculated}" if recalculated else "")
        )
        return await self.get_by_po_number(po_number)
