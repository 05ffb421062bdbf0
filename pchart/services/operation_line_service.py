"""
Operation Line Service - line numbers allowed per operation.

Operations with no configured lines accept any line number at completion.
"""
import logging
import uuid
from typing import Optional, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.models.production import OperationLine
from pchart.schemas.production import OperationLineCreate
from pchart.services.audit_service import AuditService
from pchart.services.errors import DuplicateError, NotFoundError, DomainValidationError
from pchart.services.guards import ensure_admin


logger = logging.getLogger(__name__)


class OperationLineService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def list_lines(self, operation: Optional[str] = None) -> List[OperationLine]:
        """Lines ordered by operation then line number; operation matches case-insensitively."""
        query = select(OperationLine)
        if operation:
            query = query.where(func.upper(OperationLine.operation_number) == operation.strip().upper())
        result = await self.db.execute(
            query.order_by(OperationLine.operation_number, OperationLine.line_number)
        )
        return list(result.scalars().all())

    async def ensure_allowed(self, operation: str, line_no: str) -> None:
        """Raise DomainValidationError when lines are configured and line_no is not one of them."""
        lines = [line.line_number for line in await self.list_lines(operation)]
        if not lines:
            return
        if line_no.strip().upper() not in {line.upper() for line in lines}:
            raise DomainValidationError(
                f"Line {line_no} is not configured for operation {operation}",
                details={"field": "line_no", "operation": operation, "allowed": lines}
            )

    async def create(self, data: OperationLineCreate, actor: ActorContext) -> OperationLine:
        ensure_admin(actor, "configure operation lines")
        operation = data.operation_number.strip().upper()
        line_number = data.line_number.strip()

        existing = await self.db.execute(
            select(OperationLine.id)
            .where(OperationLine.operation_number == operation)
            .where(func.upper(OperationLine.line_number) == line_number.upper())
        )
        if existing.first():
            raise DuplicateError(
                f"Line {line_number} already exists for {operation}",
                details={"operation_number": operation, "line_number": line_number}
            )

        line = OperationLine(operation_number=operation, line_number=line_number)
        self.db.add(line)
        await self.db.flush()

        await self.audit.log(
            action="CREATE",
            entity_type="OPERATION_LINE",
            entity_id=line.id,
            user_id=actor.user_id,
            new_values={"operation_number": operation, "line_number": line_number},
            description=f"Added line {line_number} to {operation}",
        )
        await self.db.commit()
        await self.db.refresh(line)
        return line

    async def delete(self, line_id: uuid.UUID, actor: ActorContext) -> None:
        """Remove a line. Completed operations keep the line number they recorded."""
        ensure_admin(actor, "configure operation lines")
        result = await self.db.execute(select(OperationLine).where(OperationLine.id == line_id))
        line = result.scalar_one_or_none()
        if line is None:
            raise NotFoundError("Operation line not found", details={"line_id": str(line_id)})

        await self.audit.log(
            action="DELETE",
            entity_type="OPERATION_LINE",
            entity_id=line.id,
            user_id=actor.user_id,
            old_values={"operation_number": line.operation_number, "line_number": line.line_number},
            description=f"Removed line {line.line_number} from {line.operation_number}",
        )
        await self.db.delete(line)
        await self.db.commit()
        logger.info(f"Line {line.line_number} of {line.operation_number} removed by {actor.user_name}")
