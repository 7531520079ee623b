"""데이터베이스 엔진 및 세션 팩토리(Database engine and session factory)."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings
from .logger import get_logger

logger = get_logger(__name__)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """비동기 엔진 제공(Provide the process-wide async engine)."""

    global _engine
    if _engine is None:
        settings = get_settings()
        logger.info("Initializing async engine for %s", settings.database_url.split("://", 1)[0])
        _engine = create_async_engine(settings.database_url, echo=settings.database_echo)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """세션 팩토리 제공(Provide the session factory bound to the engine)."""

    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    """엔진 종료(Dispose the engine and forget the session factory)."""

    global _engine, _session_factory
    if _engine is not None:
        logger.info("Disposing async engine")
        await _engine.dispose()
    _engine = None
    _session_factory = None
