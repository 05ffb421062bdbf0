"""Authentication API endpoints."""
import logging

from fastapi import APIRouter, HTTPException, status

from pchart.api.deps import DB, CurrentUser
from pchart.schemas.auth import LoginRequest, TokenResponse
from pchart.schemas.user import UserResponse
from pchart.services.auth_service import AuthService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """
    Authenticate with username and password.

    Returns a bearer token carrying the user's id, name and role.
    """
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(data.username, data.password)

    if user is None:
        logger.info(f"Failed login for {data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, expires_in = auth_service.create_token(user)
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user_id=user.id,
        name=user.display_name,
        role=user.role,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    """Get the authenticated user's profile."""
    return current_user
