"""
Defect Models - master catalog and recorded instances.

- MasterDefect: catalog entry, deactivated instead of deleted
- OperationDefect: quantities recorded against one operation
"""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String, Boolean, DateTime, ForeignKey, Integer, Text,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pchart.database import Base
from pchart.db_types import UUIDType, utcnow

if TYPE_CHECKING:
    from pchart.models.production import Operation


class MasterDefect(Base):
    """Catalog of defect types an operator can record."""
    __tablename__ = "master_defects"
    __table_args__ = (
        UniqueConstraint('name', 'applicable_operation', name='uq_master_defect_name_operation'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    applicable_operation: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    reworkable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    machine: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deactivated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deactivated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<MasterDefect(name={self.name}, active={self.is_active})>"


class OperationDefect(Base):
    """
    A defect recorded against an operation.

    quantity == quantity_rework + quantity_nogood always holds.
    quantity_replacement is only meaningful on the first operation of the
    sequence and is stored as 0 everywhere else.
    """
    __tablename__ = "operation_defects"
    __table_args__ = (
        UniqueConstraint('operation_id', 'defect_id', name='uq_operation_defect'),
        CheckConstraint(
            'quantity = quantity_rework + quantity_nogood',
            name='ck_operation_defect_balanced'
        ),
        CheckConstraint(
            'quantity_rework >= 0 AND quantity_nogood >= 0 AND quantity_replacement >= 0',
            name='ck_operation_defect_non_negative'
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    operation_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("operations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    defect_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("master_defects.id", ondelete="RESTRICT"),
        nullable=False
    )

    # Catalog values at recording time
    defect_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    defect_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    defect_machine: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    defect_reworkable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quantity_rework: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quantity_nogood: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quantity_replacement: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    operation: Mapped["Operation"] = relationship("Operation", back_populates="defects")

    def __repr__(self) -> str:
        return (
            f"<OperationDefect(defect={self.defect_name}, qty={self.quantity}, "
            f"rw={self.quantity_rework}, ng={self.quantity_nogood})>"
        )
