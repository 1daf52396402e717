from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from pharmacy_portal.db.database import get_async_session
from pharmacy_portal.api.dependencies.auth import require_admin, require_wellca_access
from pharmacy_portal.core.exceptions import WellcaEntryNotFoundError
from pharmacy_portal.models.user import User
from pharmacy_portal.schemas.wellca import (
    DailyDeliveryCount,
    ServiceTypeStat,
    WeeklyStats,
    WellcaCreate,
    WellcaResponse,
)
from pharmacy_portal.services.audit_log_service import AuditLogService
from pharmacy_portal.services.wellca_service import WellcaService

router = APIRouter(prefix="/wellca", tags=["wellca"])


@router.post("/", response_model=WellcaResponse)
async def save_entry(
    entry_data: WellcaCreate,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_wellca_access)
):
    """
    Create or replace the metrics entry for a day
    """
    return await WellcaService.save_entry(db, entry_data)


@router.get("/entry/{entry_date}", response_model=WellcaResponse)
async def get_entry(
    entry_date: date,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_wellca_access)
):
    entry = await WellcaService.get_entry_by_date(db, entry_date)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No Wellca entry for {entry_date}"
        )
    return entry


@router.get("/range", response_model=List[WellcaResponse])
async def get_entries_in_range(
    start: date,
    end: date,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_wellca_access)
):
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date cannot be before start date"
        )
    return await WellcaService.get_entries_in_range(db, start, end)


@router.get("/weekly-stats/{week_start}", response_model=WeeklyStats)
async def get_weekly_stats(
    week_start: date,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_wellca_access)
):
    return await WellcaService.get_weekly_stats(db, week_start)


@router.get("/service-stats", response_model=List[ServiceTypeStat])
async def get_service_type_stats(
    start: date,
    end: date,
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_wellca_access)
):
    return await WellcaService.get_service_type_stats(db, start, end)


@router.get("/monthly-delivery/{year}/{month}", response_model=List[DailyDeliveryCount])
async def get_monthly_delivery_counts(
    year: int,
    month: int = Path(..., ge=1, le=12),
    db: AsyncSession = Depends(get_async_session),
    _: User = Depends(require_wellca_access)
):
    return await WellcaService.get_monthly_delivery_counts(db, year, month)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin)
):
    try:
        await WellcaService.delete_entry(db, entry_id)
    except WellcaEntryNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    await AuditLogService.log_event(
        db,
        action="DELETE_WELLCA_ENTRY",
        category="WELLCA",
        details=f"Deleted Wellca entry {entry_id}",
        performed_by=admin.username,
    )
