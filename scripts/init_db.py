#!/usr/bin/env python3
"""데이터베이스 스키마 초기화 스크립트(Database schema initialization script)."""
import asyncio

from common_lib.config import get_settings
from common_lib.db import dispose_engine, get_engine
from common_lib.logger import get_logger
from search_api.app.tables import Base

logger = get_logger(__name__)


async def init_database() -> None:
    """테이블 생성(Create every table that does not exist yet)."""
    settings = get_settings()
    engine = get_engine()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready on %s", settings.database_url.split("://", 1)[0])
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(init_database())
