import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.models.standard_cost import StandardCost
from pchart.schemas.standard_cost import StandardCostCreate, StandardCostUpdate
from pchart.services.audit_service import AuditService
from pchart.services.errors import NotFoundError, DuplicateError
from pchart.services.guards import ensure_admin


logger = logging.getLogger(__name__)


class StandardCostService:
    """Standard cost per item. Deactivated, never deleted."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get(self, cost_id: uuid.UUID) -> StandardCost:
        result = await self.db.execute(select(StandardCost).where(StandardCost.id == cost_id))
        cost = result.scalar_one_or_none()
        if cost is None:
            raise NotFoundError("Standard cost not found", details={"id": str(cost_id)})
        return cost

    async def list_costs(
        self,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[StandardCost], int]:
        query = select(StandardCost)
        if is_active is not None:
            query = query.where(StandardCost.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(StandardCost.item_name.ilike(pattern), StandardCost.description.ilike(pattern)))

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        result = await self.db.execute(query.order_by(StandardCost.item_name).offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def _check_unique(self, item_name: str, exclude_id=None) -> None:
        query = select(StandardCost.id).where(StandardCost.item_name == item_name)
        if exclude_id:
            query = query.where(StandardCost.id != exclude_id)
        if (await self.db.execute(query)).first():
            raise DuplicateError(f"Standard cost for {item_name} already exists", details={"item_name": item_name})

    async def create(self, data: StandardCostCreate, actor: ActorContext) -> StandardCost:
        ensure_admin(actor, "manage standard costs")
        item_name = data.item_name.strip()
        await self._check_unique(item_name)

        cost = StandardCost(
            item_name=item_name,
            description=data.description,
            cost_per_unit=data.cost_per_unit,
            currency=data.currency.upper(),
            is_active=True,
            created_by_id=actor.user_id,
            updated_by_id=actor.user_id,
        )
        self.db.add(cost)
        await self.db.flush()

        await self.audit.log(
            action="CREATE",
            entity_type="STANDARD_COST",
            entity_id=cost.id,
            user_id=actor.user_id,
            new_values={"item_name": item_name, "cost_per_unit": data.cost_per_unit, "currency": cost.currency},
            description=f"Created standard cost for {item_name}",
        )
        await self.db.commit()
        await self.db.refresh(cost)
        return cost

    async def update(self, cost_id: uuid.UUID, data: StandardCostUpdate, actor: ActorContext) -> StandardCost:
        ensure_admin(actor, "manage standard costs")
        cost = await self.get(cost_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("item_name"):
            changes["item_name"] = changes["item_name"].strip()
            await self._check_unique(changes["item_name"], exclude_id=cost.id)
        if changes.get("currency"):
            changes["currency"] = changes["currency"].upper()

        old_values = {key: getattr(cost, key) for key in changes}
        for key, value in changes.items():
            setattr(cost, key, value)
        cost.updated_by_id = actor.user_id

        await self.audit.log(
            action="UPDATE",
            entity_type="STANDARD_COST",
            entity_id=cost.id,
            user_id=actor.user_id,
            old_values=old_values,
            new_values=changes,
            description=f"Updated standard cost for {cost.item_name}",
        )
        await self.db.commit()
        await self.db.refresh(cost)
        return cost

    async def set_active(self, cost_id: uuid.UUID, active: bool, actor: ActorContext) -> StandardCost:
        ensure_admin(actor, "manage standard costs")
        cost = await self.get(cost_id)
        if cost.is_active == active:
            return cost

        cost.is_active = active
        cost.updated_by_id = actor.user_id
        await self.audit.log(
            action="ACTIVATE" if active else "DEACTIVATE",
            entity_type="STANDARD_COST",
            entity_id=cost.id,
            user_id=actor.user_id,
            old_values={"is_active": not active},
            new_values={"is_active": active},
            description=f"{'Activated' if active else 'Deactivated'} standard cost for {cost.item_name}",
        )
        await self.db.commit()
        await self.db.refresh(cost)
        logger.info(f"Standard cost {cost.item_name} {'activated' if active else 'deactivated'} by {actor.user_name}")
        return cost
