from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.schemas.auth import UserCreate, UserResponse, TokenResponse, RefreshTokenRequest
from pharmacy_portal.services.security_service import SecurityService
from pharmacy_portal.services.user_service import UserService
from pharmacy_portal.api.dependencies.auth import get_current_active_user
from pharmacy_portal.models.user import User
from pharmacy_portal.logs import api_logger

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_async_session)
):
    """
    Register a new account with the default USER role
    """
    existing_user = await SecurityService.get_user_by_username(db, user_data.username)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already taken"
        )

    user = await UserService.create(db, username=user_data.username, password=user_data.password)
    api_logger.info(f"Registered new user {user.username}")
    return user


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Login for access token

    This endpoint is compatible with OAuth2 password flow
    """
    user = await SecurityService.authenticate_user(db, form_data.username, form_data.password)

    if not user:
        api_logger.warning(f"Failed login attempt for {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return SecurityService.create_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_async_session)
):
    tokens = await SecurityService.refresh_tokens(db, refresh_data.refresh_token)

    if not tokens:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return tokens


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user)
):
    return current_user
