from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, extract

from pharmacy_portal.core.exceptions import PacValidationError, UserNotFoundError
from pharmacy_portal.models.pac import Pac
from pharmacy_portal.models.user import User
from pharmacy_portal.schemas.pac import PacCreate, PacPage, PacResponse
from pharmacy_portal.services.productivity_calculator import elapsed_seconds
from pharmacy_portal.services.productivity_service import ProductivityService
from pharmacy_portal.services.user_service import UserService
from pharmacy_portal.logs import api_logger, debug_logger


def validate_pac(data: PacCreate) -> None:
    """Guard for callers that build PacCreate without running validators"""
    if not data.store or data.start_time is None or data.end_time is None or data.pouches_checked is None:
        raise PacValidationError("Required PAC fields missing")
    if data.pouches_checked < 0:
        raise PacValidationError("Pouches checked cannot be negative")
    if data.end_time < data.start_time:
        raise PacValidationError("End time cannot be before start time")


def to_response(pac: Pac, username: str) -> PacResponse:
    return PacResponse(
        id=pac.id,
        username=username,
        store=pac.store,
        start_time=pac.start_time,
        end_time=pac.end_time,
        pouches_checked=pac.pouches_checked,
        submission_date=pac.submission_date,
    )


class PacService:
    """PAC submission, review and deletion"""

    @staticmethod
    async def submit_pac(
        db: AsyncSession,
        username: str,
        data: PacCreate,
        productivity: ProductivityService,
    ) -> Pac:
        user = await UserService.get_by_username(db, username)
        if not user:
            raise UserNotFoundError(username)

        validate_pac(data)

        pac = Pac(
            user_id=user.id,
            store=data.store,
            start_time=data.start_time,
            end_time=data.end_time,
            duration_seconds=elapsed_seconds(data.start_time, data.end_time),
            pouches_checked=data.pouches_checked,
        )
        db.add(pac)
        await db.commit()
        await db.refresh(pac)
        debug_logger.debug(f"Saved PAC {pac.id} for {username}: {data.pouches_checked} pouches at {data.store}")

        await productivity.notify_productivity_update()
        return pac

    @staticmethod
    async def get_pacs_with_filters(
        db: AsyncSession,
        page: int = 0,
        size: int = 10,
        name_filter: Optional[str] = None,
        store: Optional[str] = None,
        month: Optional[int] = None,
    ) -> PacPage:
        if month is not None and not 1 <= month <= 12:
            raise PacValidationError(f"Invalid month: {month}")

        conditions = []
        if name_filter:
            conditions.append(func.lower(User.username).contains(name_filter.lower()))
        if store:
            conditions.append(Pac.store == store)
        if month is not None:
            conditions.append(extract("month", Pac.submission_date) == month)

        count_query = select(func.count(Pac.id)).join(Pac.user).where(*conditions)
        total = (await db.execute(count_query)).scalar_one()

        query = (
            select(Pac, User.username)
            .join(Pac.user)
            .where(*conditions)
            .order_by(Pac.submission_date.desc(), Pac.id.desc())
            .offset(page * size)
            .limit(size)
        )
        result = await db.execute(query)
        items = [to_response(pac, owner) for pac, owner in result.all()]

        return PacPage(
            items=items,
            page=page,
            size=size,
            total_items=total,
            total_pages=(total + size - 1) // size,
        )

    @staticmethod
    async def get_pac(db: AsyncSession, pac_id: int) -> Optional[Pac]:
        query = select(Pac).where(Pac.id == pac_id)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def delete_pac(db: AsyncSession, pac_id: int, productivity: ProductivityService) -> bool:
        pac = await PacService.get_pac(db, pac_id)
        if not pac:
            return False

        await db.delete(pac)
        await db.commit()
        api_logger.info(f"Deleted PAC {pac_id}")

        await productivity.notify_productivity_update()
        return True
