from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete

from pharmacy_portal.models.audit_log import AuditLog
from pharmacy_portal.logs import api_logger, debug_logger

MAX_DETAILS_LENGTH = 1000


class AuditLogService:
    """Journal of administrative actions"""

    @staticmethod
    async def log_event(
        db: AsyncSession,
        action: str,
        category: str,
        details: Optional[str],
        performed_by: str,
        user_id: Optional[int] = None,
    ) -> AuditLog:
        debug_logger.debug(f"Creating audit log entry: action={action}, category={category}")
        if details and len(details) > MAX_DETAILS_LENGTH:
            details = details[:MAX_DETAILS_LENGTH]

        entry = AuditLog(
            action=action,
            performed_by=performed_by,
            category=category,
            details=details,
            user_id=user_id,
        )
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
        api_logger.info(f"Audit log created: action={action}, user={performed_by}, category={category}")
        return entry

    @staticmethod
    async def clear_all_logs(db: AsyncSession) -> int:
        api_logger.info("Initiating complete audit log clearance")
        result = await db.execute(delete(AuditLog))
        await db.commit()
        return result.rowcount

    @staticmethod
    async def count(db: AsyncSession, performed_by: Optional[str] = None, category: Optional[str] = None) -> int:
        query = select(func.count(AuditLog.id))
        if performed_by:
            query = query.where(AuditLog.performed_by == performed_by)
        if category:
            query = query.where(AuditLog.category == category)
        return (await db.execute(query)).scalar_one()

    @staticmethod
    async def get_all(
        db: AsyncSession,
        page: int = 0,
        size: int = 20,
        performed_by: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[AuditLog]:
        query = select(AuditLog)
        if performed_by:
            query = query.where(AuditLog.performed_by == performed_by)
        if category:
            query = query.where(AuditLog.category == category)
        query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(page * size).limit(size)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_by_user(db: AsyncSession, username: str, page: int = 0, size: int = 20) -> List[AuditLog]:
        return await AuditLogService.get_all(db, page, size, performed_by=username)

    @staticmethod
    async def get_by_category(db: AsyncSession, category: str, page: int = 0, size: int = 20) -> List[AuditLog]:
        return await AuditLogService.get_all(db, page, size, category=category)

    @staticmethod
    async def get_by_date_range(db: AsyncSession, start: datetime, end: datetime) -> List[AuditLog]:
        query = (
            select(AuditLog)
            .where(AuditLog.timestamp >= start, AuditLog.timestamp <= end)
            .order_by(AuditLog.timestamp.desc())
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_recent_by_user(db: AsyncSession, username: str, limit: int = 10) -> List[AuditLog]:
        query = (
            select(AuditLog)
            .where(AuditLog.performed_by == username)
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())
