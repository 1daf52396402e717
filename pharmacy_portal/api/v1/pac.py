from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.api.dependencies.auth import get_current_active_user, require_manager
from pharmacy_portal.api.dependencies.services import get_productivity_service
from pharmacy_portal.core.exceptions import PacValidationError, UserNotFoundError
from pharmacy_portal.models.user import User
from pharmacy_portal.schemas.pac import PacCreate, PacPage, PacResponse
from pharmacy_portal.services.audit_log_service import AuditLogService
from pharmacy_portal.services.pac_service import PacService, to_response
from pharmacy_portal.services.productivity_service import ProductivityService

router = APIRouter(prefix="/pac", tags=["pac"])

AUDIT_CATEGORY = "PAC"


@router.post("/", response_model=PacResponse, status_code=status.HTTP_201_CREATED)
async def submit_pac(
    pac_data: PacCreate,
    db: AsyncSession = Depends(get_async_session),
    productivity: ProductivityService = Depends(get_productivity_service),
    current_user: User = Depends(get_current_active_user)
):
    """
    Record a pouch accuracy check for the current user
    """
    try:
        pac = await PacService.submit_pac(db, current_user.username, pac_data, productivity)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except PacValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    return to_response(pac, current_user.username)


@router.get("/responses", response_model=PacPage)
async def get_pac_responses(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    name: Optional[str] = None,
    store: Optional[str] = None,
    month: Optional[int] = None,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_manager)
):
    """
    Submitted checks, newest first, filtered by username fragment, store or month
    """
    try:
        return await PacService.get_pacs_with_filters(
            db, page=page, size=size, name_filter=name, store=store, month=month
        )
    except PacValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )


@router.delete("/{pac_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pac(
    pac_id: int,
    db: AsyncSession = Depends(get_async_session),
    productivity: ProductivityService = Depends(get_productivity_service),
    manager: User = Depends(require_manager)
):
    deleted = await PacService.delete_pac(db, pac_id, productivity)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="PAC not found"
        )

    await AuditLogService.log_event(
        db,
        action="DELETE_PAC",
        category=AUDIT_CATEGORY,
        details=f"Deleted PAC {pac_id}",
        performed_by=manager.username,
    )
