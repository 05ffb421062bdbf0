import logging
from typing import List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.config import settings
from pchart.core.actor import ActorContext
from pchart.models.production import OperationStep
from pchart.schemas.production import OperationStepCreate
from pchart.services.audit_service import AuditService
from pchart.services.errors import DuplicateError
from pchart.services.guards import ensure_admin


logger = logging.getLogger(__name__)


class OperationStepService:
    """Configured manufacturing sequence."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def list_steps(self) -> List[OperationStep]:
        result = await self.db.execute(select(OperationStep).order_by(OperationStep.step_order))
        return list(result.scalars().all())

    async def create(self, data: OperationStepCreate, actor: ActorContext) -> OperationStep:
        """Add a step. Existing orders keep the operations they were created with."""
        ensure_admin(actor, "configure operation steps")
        code = data.operation_number.strip().upper()

        existing = await self.db.execute(select(OperationStep.id).where(OperationStep.operation_number == code))
        if existing.first():
            raise DuplicateError(f"Operation step {code} already exists", details={"operation_number": code})

        step = OperationStep(operation_number=code, label=data.label, step_order=data.step_order)
        self.db.add(step)
        await self.db.flush()

        await self.audit.log(
            action="CREATE",
            entity_type="OPERATION_STEP",
            entity_id=step.id,
            user_id=actor.user_id,
            new_values={"operation_number": code, "label": data.label, "step_order": data.step_order},
            description=f"Added operation step {code}",
        )
        await self.db.commit()
        await self.db.refresh(step)
        return step

    async def seed_defaults(self) -> int:
        """Insert OPERATION_STEPS when the table is empty. Returns the number added."""
        count = (await self.db.execute(select(func.count(OperationStep.id)))).scalar() or 0
        if count:
            return 0

        steps = settings.operation_steps_list
        for index, (code, label) in enumerate(steps):
            self.db.add(OperationStep(operation_number=code, label=label, step_order=(index + 1) * 10))
        await self.db.commit()

        logger.info(f"Seeded {len(steps)} operation steps: {', '.join(code for code, _ in steps)}")
        return len(steps)
