"""User administration endpoints (admin only)."""
from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from pchart.api.deps import DB, AdminActor
from pchart.models.user import UserRole
from pchart.schemas.user import UserCreate, UserUpdate, UserResponse, UserListResponse
from pchart.services.user_service import UserService


router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    db: DB,
    actor: AdminActor,
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    search: Optional[str] = Query(None, description="Search by username or name"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    users, total = await UserService(db).list_users(
        role=role.value if role else None,
        is_active=is_active,
        search=search,
        skip=skip,
        limit=limit,
    )
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, db: DB, actor: AdminActor):
    return await UserService(db).get(user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, db: DB, actor: AdminActor):
    return await UserService(db).create(data, actor)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: uuid.UUID, data: UserUpdate, db: DB, actor: AdminActor):
    return await UserService(db).update(user_id, data, actor)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: uuid.UUID, db: DB, actor: AdminActor):
    """
    Delete a user.

    Locks held by the deleted user stay on their orders and are reported
    as orphaned until an admin force-releases them.
    """
    await UserService(db).delete(user_id, actor)
