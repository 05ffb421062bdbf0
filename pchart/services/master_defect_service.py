"""
Master Defect Service - catalog of recordable defect types.

Catalog entries are never hard-deleted; deactivation keeps historical
ledger references valid.
"""
import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.db_types import utcnow
from pchart.models.defect import MasterDefect
from pchart.schemas.defect import MasterDefectCreate, MasterDefectUpdate
from pchart.services.audit_service import AuditService
from pchart.services.errors import NotFoundError, DuplicateError
from pchart.services.guards import ensure_admin


logger = logging.getLogger(__name__)


class MasterDefectService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get(self, defect_id: uuid.UUID) -> MasterDefect:
        result = await self.db.execute(select(MasterDefect).where(MasterDefect.id == defect_id))
        defect = result.scalar_one_or_none()
        if defect is None:
            raise NotFoundError("Master defect not found", details={"defect_id": str(defect_id)})
        return defect

    async def list_defects(
        self,
        category: Optional[str] = None,
        applicable_operation: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[MasterDefect], int]:
        """
        List catalog entries.

        A defect with no applicable_operation applies to every operation and
        is included when filtering by operation.
        """
        query = select(MasterDefect)
        if category:
            query = query.where(MasterDefect.category == category)
        if applicable_operation:
            query = query.where(
                or_(
                    func.upper(MasterDefect.applicable_operation) == applicable_operation.upper(),
                    MasterDefect.applicable_operation.is_(None),
                )
            )
        if is_active is not None:
            query = query.where(MasterDefect.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(MasterDefect.name.ilike(pattern), MasterDefect.description.ilike(pattern)))

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        result = await self.db.execute(query.order_by(MasterDefect.name).offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def _check_unique(self, name: str, applicable_operation: Optional[str], exclude_id=None) -> None:
        query = select(MasterDefect.id).where(MasterDefect.name == name)
        if applicable_operation is None:
            query = query.where(MasterDefect.applicable_operation.is_(None))
        else:
            query = query.where(MasterDefect.applicable_operation == applicable_operation)
        if exclude_id:
            query = query.where(MasterDefect.id != exclude_id)
        if (await self.db.execute(query)).first():
            raise DuplicateError(
                f"Master defect {name} already exists for {applicable_operation or 'all operations'}",
                details={"name": name, "applicable_operation": applicable_operation}
            )

    async def create(self, data: MasterDefectCreate, actor: ActorContext) -> MasterDefect:
        ensure_admin(actor, "manage master defects")
        name = data.name.strip()
        operation = data.applicable_operation.strip().upper() if data.applicable_operation else None
        await self._check_unique(name, operation)

        defect = MasterDefect(
            name=name,
            description=data.description,
            category=data.category,
            applicable_operation=operation,
            reworkable=data.reworkable,
            machine=data.machine,
            is_active=True,
        )
        self.db.add(defect)
        await self.db.flush()

        await self.audit.log(
            action="CREATE",
            entity_type="MASTER_DEFECT",
            entity_id=defect.id,
            user_id=actor.user_id,
            new_values=data.model_dump(),
            description=f"Created master defect {name}",
        )
        await self.db.commit()
        await self.db.refresh(defect)
        return defect

    async def update(self, defect_id: uuid.UUID, data: MasterDefectUpdate, actor: ActorContext) -> MasterDefect:
        ensure_admin(actor, "manage master defects")
        defect = await self.get(defect_id)
        changes = data.model_dump(exclude_unset=True)
        if "applicable_operation" in changes and changes["applicable_operation"]:
            changes["applicable_operation"] = changes["applicable_operation"].strip().upper()
        if "name" in changes and changes["name"]:
            changes["name"] = changes["name"].strip()

        if "name" in changes or "applicable_operation" in changes:
            await self._check_unique(
                changes.get("name", defect.name),
                changes.get("applicable_operation", defect.applicable_operation),
                exclude_id=defect.id,
            )

        old_values = {key: getattr(defect, key) for key in changes}
        for key, value in changes.items():
            setattr(defect, key, value)

        await self.audit.log(
            action="UPDATE",
            entity_type="MASTER_DEFECT",
            entity_id=defect.id,
            user_id=actor.user_id,
            old_values=old_values,
            new_values=changes,
            description=f"Updated master defect {defect.name}",
        )
        await self.db.commit()
        await self.db.refresh(defect)
        return defect

    async def set_active(self, defect_id: uuid.UUID, active: bool, actor: ActorContext) -> MasterDefect:
        ensure_admin(actor, "manage master defects")
        defect = await self.get(defect_id)
        if defect.is_active == active:
            return defect

        defect.is_active = active
        defect.deactivated_at = None if active else utcnow()
        defect.deactivated_by_id = None if active else actor.user_id

        await self.audit.log(
            action="ACTIVATE" if active else "DEACTIVATE",
            entity_type="MASTER_DEFECT",
            entity_id=defect.id,
            user_id=actor.user_id,
            old_values={"is_active": not active},
            new_values={"is_active": active},
            description=f"{'Activated' if active else 'Deactivated'} master defect {defect.name}",
        )
        await self.db.commit()
        await self.db.refresh(defect)
        logger.info(f"Master defect {defect.name} {'activated' if active else 'deactivated'} by {actor.user_name}")
        return defect
