"""
Defect edit request model.

Operators cannot change the ledger of a completed operation directly; they
file a request that an admin approves or rejects exactly once.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from pchart.database import Base
from pchart.db_types import UUIDType, utcnow


class EditRequestType(str, Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class EditRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DefectEditRequest(Base):
    __tablename__ = "defect_edit_requests"
    __table_args__ = (
        Index('ix_defect_edit_requests_status_created', 'status', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Target; operation_defect_id is null for "add" requests
    operation_defect_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("operation_defects.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    operation_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("operations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    production_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("production_orders.id", ondelete="RESTRICT"),
        nullable=False
    )
    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    requested_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    requested_by_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)

    request_type: Mapped[str] = mapped_column(
        String(10),
        default=EditRequestType.EDIT.value,
        nullable=False,
        comment="add, edit, delete"
    )

    defect_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("master_defects.id", ondelete="SET NULL"),
        nullable=True
    )
    defect_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    operation_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Snapshot at request time
    current_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_rw: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_ng: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_replacement: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Proposed values
    requested_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    requested_rw: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    requested_ng: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    requested_replacement: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    reason: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=EditRequestStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, approved, rejected"
    )
    resolved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.status == EditRequestStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<DefectEditRequest(type={self.request_type}, status={self.status})>"
