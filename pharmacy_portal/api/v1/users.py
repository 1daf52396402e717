from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.schemas.auth import UserResponse, UserUpdate, RoleUpdate
from pharmacy_portal.services.user_service import UserService
from pharmacy_portal.services.audit_log_service import AuditLogService
from pharmacy_portal.api.dependencies.auth import get_current_active_user, require_admin
from pharmacy_portal.api.dependencies.services import get_productivity_service
from pharmacy_portal.services.productivity_service import ProductivityService
from pharmacy_portal.models.user import User, UserRole

router = APIRouter(prefix="/users", tags=["users"])

AUDIT_CATEGORY = "USER_MANAGEMENT"


@router.get("/", response_model=List[UserResponse])
async def get_users(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_admin)
):
    """
    Get all users (admins only)
    """
    return await UserService.get_all(db, skip=skip, limit=limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_active_user)
):
    # Admins, or the user themselves
    if current_user.role != UserRole.ADMIN and current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )

    user = await UserService.get_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_async_session),
    productivity: ProductivityService = Depends(get_productivity_service),
    current_user: User = Depends(get_current_active_user)
):
    if current_user.role != UserRole.ADMIN and current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )

    user = await UserService.get_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    renamed = bool(user_data.username) and user_data.username != user.username
    if renamed:
        existing_user = await UserService.get_by_username(db, user_data.username)
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username already taken"
            )

    updated = await UserService.update(
        db,
        user_id,
        username=user_data.username,
        password=user_data.password
    )

    # Productivity snapshots are keyed by username
    if renamed:
        await productivity.notify_productivity_update()

    return updated


@router.put("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: int,
    role_data: RoleUpdate,
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin)
):
    """
    Change a user's role (admins only)
    """
    user = await UserService.get_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    old_role = user.role
    updated = await UserService.update(db, user_id, role=role_data.role)
    await AuditLogService.log_event(
        db,
        action="CHANGE_ROLE",
        category=AUDIT_CATEGORY,
        details=f"{updated.username}: {old_role.value} -> {role_data.role.value}",
        performed_by=admin.username,
        user_id=user_id,
    )
    return updated


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_async_session),
    productivity: ProductivityService = Depends(get_productivity_service),
    admin: User = Depends(require_admin)
):
    """
    Delete a user and their PAC submissions (admins only)
    """
    if admin.id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot delete their own account"
        )

    user = await UserService.get_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    username = user.username
    result = await UserService.delete(db, user_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete user"
        )

    # Their PAC records went with them
    await productivity.notify_productivity_update()

    await AuditLogService.log_event(
        db,
        action="DELETE_USER",
        category=AUDIT_CATEGORY,
        details=f"Deleted user {username}",
        performed_by=admin.username,
    )
