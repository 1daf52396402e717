from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmacy_portal.core.config import Settings
from pharmacy_portal.repositories.pac_repository import SqlAlchemyPacRepository
from pharmacy_portal.services.cache import TTLCache
from pharmacy_portal.services.productivity_service import ProductivityService


@dataclass(frozen=True)
class Container:
    settings: Settings
    pac_repo: SqlAlchemyPacRepository
    productivity_cache: TTLCache
    productivity_service: ProductivityService


def build_container(*, settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> Container:
    pac_repo = SqlAlchemyPacRepository(session_factory)
    productivity_cache = TTLCache(
        "productivity",
        max_entries=settings.PRODUCTIVITY_CACHE_MAX_ENTRIES,
        ttl_seconds=settings.PRODUCTIVITY_CACHE_TTL_SECONDS,
    )
    productivity_service = ProductivityService(
        pac_repo,
        cache=productivity_cache,
        user_stream_timeout=settings.USER_STREAM_TIMEOUT_SECONDS,
    )
    return Container(
        settings=settings,
        pac_repo=pac_repo,
        productivity_cache=productivity_cache,
        productivity_service=productivity_service,
    )
