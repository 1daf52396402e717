from datetime import date, datetime
from typing import List, Protocol, Sequence, Tuple

from sqlalchemy import Float, case, cast, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from pharmacy_portal.core.exceptions import DataUnavailableError
from pharmacy_portal.models.pac import Pac
from pharmacy_portal.models.user import User
from pharmacy_portal.schemas.pac import PacRecord
from pharmacy_portal.logs import debug_logger

# (username, submissions, pouches, avg seconds per pouch, avg pouches per hour)
ProductivityRow = Tuple[str, int, int, float, float]


class PacRepository(Protocol):
    async def find_all(self) -> List[PacRecord]:
        raise NotImplementedError

    async def find_by_user(self, username: str) -> List[PacRecord]:
        raise NotImplementedError

    async def user_exists(self, username: str) -> bool:
        raise NotImplementedError

    async def get_user_productivity_page(self, page: int, size: int) -> Tuple[Sequence[ProductivityRow], int]:
        """Aggregate rows for one page, plus the number of users with at least one check"""

        raise NotImplementedError

    async def get_daily_submission_counts(self, start: datetime, end: datetime) -> List[Tuple[date, int]]:
        raise NotImplementedError


def to_record(pac: Pac) -> PacRecord:
    return PacRecord(
        id=pac.id,
        username=pac.user.username,
        store=pac.store,
        start_time=pac.start_time,
        end_time=pac.end_time,
        pouches_checked=pac.pouches_checked,
        submission_date=pac.submission_date,
    )


class SqlAlchemyPacRepository:
    """Read side of the PAC table, one short-lived session per call"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _fetch_records(self, query) -> List[PacRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [to_record(pac) for pac in result.scalars().all()]
        except SQLAlchemyError as e:
            debug_logger.error(f"Failed to read PAC records: {e}")
            raise DataUnavailableError("PAC records are unavailable") from e

    async def find_all(self) -> List[PacRecord]:
        query = select(Pac).options(joinedload(Pac.user)).order_by(Pac.id)
        return await self._fetch_records(query)

    async def find_by_user(self, username: str) -> List[PacRecord]:
        query = (
            select(Pac)
            .join(Pac.user)
            .options(joinedload(Pac.user))
            .where(User.username == username)
            .order_by(Pac.id)
        )
        return await self._fetch_records(query)

    async def user_exists(self, username: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User.id).where(User.username == username))
                return result.first() is not None
        except SQLAlchemyError as e:
            debug_logger.error(f"Error checking user existence for username {username}: {e}")
            raise DataUnavailableError("User lookup is unavailable") from e

    async def get_user_productivity_page(self, page: int, size: int) -> Tuple[Sequence[ProductivityRow], int]:
        submissions = func.count(Pac.id)
        pouches = func.coalesce(func.sum(Pac.pouches_checked), 0)
        seconds = func.coalesce(func.sum(Pac.duration_seconds), 0)

        avg_time = case((pouches > 0, cast(seconds, Float) / pouches), else_=0.0)
        avg_rate = case((seconds > 0, cast(pouches, Float) * 3600.0 / seconds), else_=0.0)

        query = (
            select(User.username, submissions, pouches, avg_time, avg_rate)
            .join(Pac, Pac.user_id == User.id)
            .group_by(User.username)
            .order_by(submissions.desc(), User.username.asc())
            .offset(page * size)
            .limit(size)
        )
        count_query = select(func.count(func.distinct(Pac.user_id)))

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
                total = (await session.execute(count_query)).scalar_one()
        except SQLAlchemyError as e:
            debug_logger.error(f"Failed to read productivity page {page} (size {size}): {e}")
            raise DataUnavailableError("Productivity data is unavailable") from e

        return [tuple(row) for row in rows], int(total or 0)

    async def get_daily_submission_counts(self, start: datetime, end: datetime) -> List[Tuple[date, int]]:
        day = func.date(Pac.submission_date)
        query = (
            select(day, func.count(Pac.id))
            .where(Pac.submission_date >= start, Pac.submission_date <= end)
            .group_by(day)
            .order_by(day)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except SQLAlchemyError as e:
            debug_logger.error(f"Failed to read daily submission counts: {e}")
            raise DataUnavailableError("Submission history is unavailable") from e

        counts = []
        for day_value, count in rows:
            # SQLite hands back DATE() as text
            if isinstance(day_value, str):
                day_value = date.fromisoformat(day_value)
            elif isinstance(day_value, datetime):
                day_value = day_value.date()
            counts.append((day_value, int(count)))
        return counts
