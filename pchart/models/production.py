"""
Production Models - orders, their operation steps and per-operation records.

- OperationStep: configured manufacturing sequence (OP10, OP15, ...)
- OperationLine: line numbers allowed per operation
- ProductionOrder: a PO moving through the sequence, carries the edit lock
- Operation: one step of one PO with its input/output quantities
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pchart.database import Base
from pchart.db_types import UUIDType, utcnow

if TYPE_CHECKING:
    from pchart.models.defect import OperationDefect


# ============================================================================
# ENUMS
# ============================================================================

class ProductionOrderStatus(str, Enum):
    """Overall PO status. Only ever moves forward."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OperationState(str, Enum):
    """Lifecycle of a single operation, derived from its timestamps."""
    NOT_STARTED = "not_started"
    STARTED = "started"
    COMPLETED = "completed"


# ============================================================================
# MODELS
# ============================================================================

class OperationStep(Base):
    """Configured operation in the manufacturing sequence."""
    __tablename__ = "operation_steps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    operation_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    step_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


class OperationLine(Base):
    """Line number allowed when completing an operation."""
    __tablename__ = "operation_lines"
    __table_args__ = (
        UniqueConstraint('operation_number', 'line_number', name='uq_operation_line'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    operation_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    line_number: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )


class ProductionOrder(Base):
    """
    Production order (PO).

    The editing_user_* / locked_at columns form the advisory edit lock:
    all null means unlocked, editing_user_id and locked_at are set together.
    """
    __tablename__ = "production_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Identity
    po_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    po_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Progress
    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductionOrderStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, in_progress, completed"
    )
    current_operation: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    current_operation_start_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    current_operation_end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Advisory edit lock
    editing_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=True,
        comment="Lock holder; intentionally not a foreign key"
    )
    editing_user_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    operations: Mapped[List["Operation"]] = relationship(
        "Operation",
        back_populates="production_order",
        order_by="Operation.step_order",
        lazy="selectin",
    )

    @property
    def is_locked(self) -> bool:
        return self.editing_user_id is not None and self.locked_at is not None

    def __repr__(self) -> str:
        return f"<ProductionOrder(po_number={self.po_number}, status={self.status})>"


class Operation(Base):
    """
    One operation step of a production order.

    output_quantity and end_time are set together at completion.
    """
    __tablename__ = "operations"
    __table_args__ = (
        UniqueConstraint('production_order_id', 'operation', name='uq_operation_per_order'),
        Index('ix_operations_order_step', 'production_order_id', 'step_order'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    production_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("production_orders.id", ondelete="RESTRICT"),
        nullable=False
    )
    operation: Mapped[str] = mapped_column(String(20), nullable=False, comment="Operation code, e.g. OP10")
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)

    operator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Quantities
    input_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    output_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Timing
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rf: Mapped[int] = mapped_column(Integer, default=1, nullable=False, comment="Resource factor")
    line_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    production_order: Mapped["ProductionOrder"] = relationship(
        "ProductionOrder",
        back_populates="operations",
    )
    defects: Mapped[List["OperationDefect"]] = relationship(
        "OperationDefect",
        back_populates="operation",
        order_by="OperationDefect.recorded_at",
        lazy="selectin",
    )

    @property
    def state(self) -> OperationState:
        if self.end_time is not None:
            return OperationState.COMPLETED
        if self.start_time is not None:
            return OperationState.STARTED
        return OperationState.NOT_STARTED

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    def __repr__(self) -> str:
        return f"<Operation(operation={self.operation}, state={self.state.value})>"
