from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
import calendar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete

from pharmacy_portal.core.exceptions import WellcaEntryNotFoundError
from pharmacy_portal.models.wellca import WellcaEntry
from pharmacy_portal.schemas.wellca import (
    DailyDeliveryCount,
    ServiceTypeStat,
    WeeklyStats,
    WellcaCreate,
    WellcaResponse,
)
from pharmacy_portal.services.cache import TTLCache
from pharmacy_portal.logs import api_logger, debug_logger


class WellcaService:
    """Daily Wellca metrics: entry, lookup and weekly/monthly summaries"""

    entry_cache = TTLCache("wellcaData")
    range_cache = TTLCache("wellcaRangeData")

    @staticmethod
    def clear_caches() -> None:
        debug_logger.debug("Clearing all Wellca related caches")
        WellcaService.entry_cache.invalidate_all()
        WellcaService.range_cache.invalidate_all()

    @staticmethod
    async def _get_model_by_date(db: AsyncSession, entry_date: date) -> Optional[WellcaEntry]:
        result = await db.execute(select(WellcaEntry).where(WellcaEntry.date == entry_date))
        return result.scalars().first()

    @staticmethod
    async def save_entry(db: AsyncSession, data: WellcaCreate) -> WellcaResponse:
        """Create the entry for a date, or replace the existing one"""
        values = data.model_dump()
        for courier in ("purolator", "fedex", "one_courier", "go_bolt"):
            if values[courier] is None:
                values[courier] = 0
        debug_logger.log_data("Wellca entry", data)

        entry = await WellcaService._get_model_by_date(db, data.date)
        if entry:
            api_logger.info(f"Updating existing Wellca entry for date: {data.date}")
            for field, value in values.items():
                setattr(entry, field, value)
        else:
            entry = WellcaEntry(**values)
            db.add(entry)

        await db.commit()
        await db.refresh(entry)
        debug_logger.debug(
            f"Saved Wellca entry {entry.id}. Service type: {entry.service_type}, cost: {entry.service_cost}"
        )

        WellcaService.clear_caches()
        return WellcaResponse.model_validate(entry)

    @staticmethod
    async def get_entry_by_date(db: AsyncSession, entry_date: date) -> Optional[WellcaResponse]:
        async def load() -> Optional[WellcaResponse]:
            debug_logger.debug(f"Fetching Wellca entry for date: {entry_date}")
            entry = await WellcaService._get_model_by_date(db, entry_date)
            return WellcaResponse.model_validate(entry) if entry else None

        return await WellcaService.entry_cache.get_or_load(entry_date.isoformat(), load)

    @staticmethod
    async def _get_models_in_range(db: AsyncSession, start_date: date, end_date: date) -> List[WellcaEntry]:
        query = (
            select(WellcaEntry)
            .where(WellcaEntry.date >= start_date, WellcaEntry.date <= end_date)
            .order_by(WellcaEntry.date.asc())
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_entries_in_range(db: AsyncSession, start_date: date, end_date: date) -> List[WellcaResponse]:
        async def load() -> List[WellcaResponse]:
            entries = await WellcaService._get_models_in_range(db, start_date, end_date)
            debug_logger.debug(f"Found {len(entries)} Wellca entries between {start_date} and {end_date}")
            return [WellcaResponse.model_validate(e) for e in entries]

        key = f"{start_date.isoformat()}-{end_date.isoformat()}"
        return await WellcaService.range_cache.get_or_load(key, load)

    @staticmethod
    async def get_weekly_stats(db: AsyncSession, week_start: date) -> WeeklyStats:
        week_end = week_start + timedelta(days=6)
        entries = await WellcaService._get_models_in_range(db, week_start, week_end)
        return WellcaService.calculate_weekly_stats(entries)

    @staticmethod
    def calculate_weekly_stats(entries: List[WellcaEntry]) -> WeeklyStats:
        profiles = [e.profiles_entered or 0 for e in entries]
        stats = WeeklyStats(
            average_profiles_entered=sum(profiles) / len(profiles) if profiles else 0.0,
            total_rx_filled=sum(e.total_filled for e in entries),
            entries_count=len(entries),
        )
        debug_logger.debug(f"Calculated weekly stats: {stats}")
        return stats

    @staticmethod
    async def get_service_type_stats(db: AsyncSession, start_date: date, end_date: date) -> List[ServiceTypeStat]:
        query = (
            select(WellcaEntry.service_type, func.count(WellcaEntry.id), func.sum(WellcaEntry.service_cost))
            .where(WellcaEntry.date >= start_date, WellcaEntry.date <= end_date)
            .group_by(WellcaEntry.service_type)
        )
        result = await db.execute(query)
        return [
            ServiceTypeStat(type=service_type, count=count, total_cost=total or Decimal("0"))
            for service_type, count, total in result.all()
        ]

    @staticmethod
    async def get_monthly_delivery_counts(db: AsyncSession, year: int, month: int) -> List[DailyDeliveryCount]:
        start_date = date(year, month, 1)
        end_date = date(year, month, calendar.monthrange(year, month)[1])
        debug_logger.debug(f"Fetching monthly delivery counts for period: {start_date} to {end_date}")

        query = (
            select(
                WellcaEntry.date,
                func.sum(WellcaEntry.purolator),
                func.sum(WellcaEntry.fedex),
                func.sum(WellcaEntry.one_courier),
                func.sum(WellcaEntry.go_bolt),
            )
            .where(WellcaEntry.date >= start_date, WellcaEntry.date <= end_date)
            .group_by(WellcaEntry.date)
            .order_by(WellcaEntry.date)
        )
        result = await db.execute(query)
        return [
            DailyDeliveryCount(
                date=day,
                purolator_count=purolator or 0,
                fedex_count=fedex or 0,
                one_courier_count=one_courier or 0,
                go_bolt_count=go_bolt or 0,
            )
            for day, purolator, fedex, one_courier, go_bolt in result.all()
        ]

    @staticmethod
    async def delete_entry(db: AsyncSession, entry_id: int) -> None:
        debug_logger.debug(f"Deleting Wellca entry with ID: {entry_id}")
        result = await db.execute(delete(WellcaEntry).where(WellcaEntry.id == entry_id))
        await db.commit()
        if result.rowcount == 0:
            raise WellcaEntryNotFoundError(entry_id)
        WellcaService.clear_caches()
