from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from pchart.models.user import UserRole
from pchart.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class UserCreate(BaseCreateSchema):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=150)
    email: Optional[str] = Field(None, max_length=255)
    department: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.OPERATOR


class UserUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, max_length=150)
    email: Optional[str] = Field(None, max_length=255)
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)


class UserResponse(BaseResponseSchema):
    id: UUID
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    skip: int
    limit: int
