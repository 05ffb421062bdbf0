"""User administration. Deleting a user leaves any lock they held orphaned."""
import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from pchart.core.actor import ActorContext
from pchart.core.security import get_password_hash
from pchart.models.user import User
from pchart.schemas.user import UserCreate, UserUpdate
from pchart.services.audit_service import AuditService
from pchart.services.errors import NotFoundError, DuplicateError, DomainValidationError
from pchart.services.guards import ensure_admin


logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return user

    async def list_users(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[User], int]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(User.username.ilike(pattern), User.name.ilike(pattern)))

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        result = await self.db.execute(query.order_by(User.username).offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def _check_unique(self, username: Optional[str], email: Optional[str], exclude_id=None) -> None:
        if username:
            query = select(User.id).where(User.username == username)
            if exclude_id:
                query = query.where(User.id != exclude_id)
            if (await self.db.execute(query)).first():
                raise DuplicateError(f"Username {username} already exists", details={"username": username})
        if email:
            query = select(User.id).where(User.email == email)
            if exclude_id:
                query = query.where(User.id != exclude_id)
            if (await self.db.execute(query)).first():
                raise DuplicateError(f"Email {email} already exists", details={"email": email})

    async def create(self, data: UserCreate, actor: ActorContext) -> User:
        ensure_admin(actor, "create users")
        username = data.username.strip()
        email = data.email.lower() if data.email else None
        await self._check_unique(username, email)

        user = User(
            username=username,
            password_hash=get_password_hash(data.password),
            name=data.name,
            email=email,
            department=data.department,
            role=data.role.value,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()

        await self.audit.log(
            action="CREATE",
            entity_type="USER",
            entity_id=user.id,
            user_id=actor.user_id,
            new_values={"username": username, "role": user.role},
            description=f"Created user {username}",
        )
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {username} ({user.role}) created by {actor.user_name}")
        return user

    async def update(self, user_id: uuid.UUID, data: UserUpdate, actor: ActorContext) -> User:
        ensure_admin(actor, "update users")
        user = await self.get(user_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email"):
            changes["email"] = changes["email"].lower()
            await self._check_unique(None, changes["email"], exclude_id=user.id)

        old_values = {key: getattr(user, key) for key in changes if key != "password"}
        password = changes.pop("password", None)
        if password:
            user.password_hash = get_password_hash(password)
        for key, value in changes.items():
            if key == "role" and value is not None:
                value = value.value if hasattr(value, "value") else value
            setattr(user, key, value)

        await self.audit.log(
            action="UPDATE",
            entity_type="USER",
            entity_id=user.id,
            user_id=actor.user_id,
            old_values=old_values,
            new_values={key: getattr(user, key) for key in changes},
            description=f"Updated user {user.username}",
        )
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def delete(self, user_id: uuid.UUID, actor: ActorContext) -> None:
        """Hard delete."""
        ensure_admin(actor, "delete users")
        if user_id == actor.user_id:
            raise DomainValidationError("Admins cannot delete their own account")
        user = await self.get(user_id)

        await self.audit.log(
            action="DELETE",
            entity_type="USER",
            entity_id=user.id,
            user_id=actor.user_id,
            old_values={"username": user.username, "role": user.role},
            description=f"Deleted user {user.username}",
        )
        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"User {user.username} deleted by {actor.user_name}")
