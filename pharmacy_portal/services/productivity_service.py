import asyncio
from datetime import date, datetime, timedelta
from typing import List, Optional

from pharmacy_portal.core.exceptions import UserNotFoundError
from pharmacy_portal.repositories.pac_repository import PacRepository
from pharmacy_portal.schemas.productivity import (
    ChartData,
    OverallProductivityResponse,
    ProductivityPage,
    UserProductivity,
    UserProductivityStreamItem,
)
from pharmacy_portal.services import productivity_calculator as calculator
from pharmacy_portal.services.cache import TTLCache
from pharmacy_portal.services.stream_service import (
    ProductivityBroadcaster,
    StreamTransport,
    Subscription,
)
from pharmacy_portal.logs import api_logger, debug_logger

OVERALL_CACHE_KEY = "overall"
CHART_DAYS = 7


def page_cache_key(page: int, size: int) -> str:
    return f"{page}-{size}"


class ProductivityService:
    """
    Productivity reads, their cache, and the two live channels.

    Writers call notify_productivity_update() after committing; the cache
    is cleared before anything is published, so the next read always sees
    the write. Publishing is best effort and never fails the write.
    """

    def __init__(
        self,
        repository: PacRepository,
        cache: Optional[TTLCache] = None,
        user_stream_timeout: Optional[float] = 300,
    ):
        self.repository = repository
        self.cache = cache if cache is not None else TTLCache("productivity")
        self.user_broadcaster = ProductivityBroadcaster(
            "user-productivity",
            self.get_user_stream_payload,
            idle_timeout=user_stream_timeout,
        )
        self.overall_broadcaster = ProductivityBroadcaster(
            "overall-productivity",
            self.get_overall_productivity,
            idle_timeout=None,
        )

    async def _compute_overall(self) -> UserProductivity:
        records = await self.repository.find_all()
        snapshots = calculator.compute_user_snapshots(records)
        return calculator.compute_overall_snapshot(snapshots)

    async def get_overall_productivity(self) -> UserProductivity:
        return await self.cache.get_or_load(OVERALL_CACHE_KEY, self._compute_overall)

    async def get_all_user_productivity(self, page: int, size: int) -> ProductivityPage:
        if page < 0 or size < 1:
            raise ValueError("Page must be >= 0 and size must be >= 1")

        async def load() -> ProductivityPage:
            api_logger.info(f"Fetching all user productivity data for page {page} with size {size}")
            rows, total = await self.repository.get_user_productivity_page(page, size)
            content = [calculator.snapshot_from_row(row) for row in rows]
            return ProductivityPage(
                content=content,
                page=page,
                size=size,
                total_elements=total,
                total_pages=(total + size - 1) // size,
            )

        return await self.cache.get_or_load(page_cache_key(page, size), load)

    async def user_exists(self, username: str) -> bool:
        return await self.repository.user_exists(username)

    async def get_user_productivity(self, username: str) -> UserProductivity:
        """Metrics for one user; a known user without checks gets zeros"""
        if not await self.repository.user_exists(username):
            api_logger.warning(f"Attempted to access non-existent user: {username}")
            raise UserNotFoundError(username)

        records = await self.repository.find_by_user(username)
        snapshot = calculator.compute_user_snapshot(username, records)
        debug_logger.debug(f"User productivity for {username}: {snapshot}")
        return snapshot

    async def get_user_stream_payload(self) -> List[UserProductivityStreamItem]:
        records = await self.repository.find_all()
        return [calculator.to_stream_item(s) for s in calculator.compute_user_snapshots(records)]

    async def get_chart_data(self, today: Optional[date] = None, days: int = CHART_DAYS) -> ChartData:
        """Submissions per day for the trailing window, zero-filled"""
        today = today or date.today()
        first_day = today - timedelta(days=days - 1)
        start = datetime.combine(first_day, datetime.min.time())
        end = datetime.combine(today, datetime.max.time())

        counts = dict(await self.repository.get_daily_submission_counts(start, end))

        labels = []
        values = []
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            labels.append(day.strftime("%b %d"))
            values.append(counts.get(day, 0))
        return ChartData(labels=labels, pouches_checked=values)

    async def get_overall_with_chart(self, today: Optional[date] = None) -> OverallProductivityResponse:
        overall = await self.get_overall_productivity()
        chart = await self.get_chart_data(today=today)
        return OverallProductivityResponse(**overall.model_dump(), chart_data=chart)

    async def open_live_stream(self, transport: StreamTransport) -> Subscription:
        return await self.user_broadcaster.subscribe(transport)

    async def open_aggregate_live_stream(self, transport: StreamTransport) -> Subscription:
        return await self.overall_broadcaster.subscribe(transport)

    def invalidate(self) -> None:
        api_logger.info("Updating user productivity and evicting cache")
        self.cache.invalidate_all()

    async def notify_productivity_update(self) -> None:
        self.invalidate()
        results = await asyncio.gather(
            self.user_broadcaster.publish(),
            self.overall_broadcaster.publish(),
            return_exceptions=True,
        )
        for broadcaster, result in zip((self.user_broadcaster, self.overall_broadcaster), results):
            if isinstance(result, Exception):
                api_logger.error(f"Stream[{broadcaster.name}]: Failed to publish productivity update: {result}")

    async def expire_idle_streams(self) -> int:
        expired = await self.user_broadcaster.expire_idle()
        expired += await self.overall_broadcaster.expire_idle()
        return expired

    async def run_idle_reaper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            expired = await self.expire_idle_streams()
            if expired:
                api_logger.info(f"Closed {expired} idle productivity streams")

    async def shutdown(self) -> None:
        await self.user_broadcaster.close_all()
        await self.overall_broadcaster.close_all()
