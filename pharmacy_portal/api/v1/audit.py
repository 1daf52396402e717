from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.api.dependencies.auth import require_admin
from pharmacy_portal.models.audit_log import AuditLog
from pharmacy_portal.models.user import User
from pharmacy_portal.schemas.audit_log import AuditLogPage, AuditLogResponse
from pharmacy_portal.services.audit_log_service import AuditLogService

router = APIRouter(prefix="/audit-logs", tags=["audit"])


async def _page(
    db: AsyncSession,
    logs: List[AuditLog],
    page: int,
    size: int,
    performed_by: Optional[str] = None,
    category: Optional[str] = None,
) -> AuditLogPage:
    total = await AuditLogService.count(db, performed_by=performed_by, category=category)
    return AuditLogPage(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        page=page,
        size=size,
        total_items=total,
    )


@router.get("/", response_model=AuditLogPage)
async def get_audit_logs(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_admin)
):
    """
    Audit journal, newest first (admins only)
    """
    logs = await AuditLogService.get_all(db, page, size)
    return await _page(db, logs, page, size)


@router.get("/user/{username}", response_model=AuditLogPage)
async def get_audit_logs_by_user(
    username: str,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_admin)
):
    logs = await AuditLogService.get_by_user(db, username, page, size)
    return await _page(db, logs, page, size, performed_by=username)


@router.get("/category/{category}", response_model=AuditLogPage)
async def get_audit_logs_by_category(
    category: str,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_admin)
):
    logs = await AuditLogService.get_by_category(db, category, page, size)
    return await _page(db, logs, page, size, category=category)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def clear_audit_logs(
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin)
):
    """
    Remove every audit entry, leaving a single record of the clearance
    """
    removed = await AuditLogService.clear_all_logs(db)
    await AuditLogService.log_event(
        db,
        action="CLEAR_AUDIT_LOGS",
        category="AUDIT",
        details=f"Cleared {removed} audit log entries",
        performed_by=admin.username,
    )


@router.get("/recent/{username}", response_model=List[AuditLogResponse])
async def get_recent_audit_logs(
    username: str,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_admin)
):
    return await AuditLogService.get_recent_by_user(db, username, limit)


@router.get("/range", response_model=List[AuditLogResponse])
async def get_audit_logs_in_range(
    start: datetime,
    end: datetime,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_admin)
):
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End cannot be before start"
        )
    return await AuditLogService.get_by_date_range(db, start, end)
