"""PostgreSQL engine for the catalog, enrollment and completion stores.

DATABASE_URL set:    one asyncpg-backed engine per process and a session
                     factory; ``get_stores`` opens one session per request.
DATABASE_URL unset:  ``engine`` and ``async_session_factory`` are None and
                     requests run on the in-memory stores.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from lessongate.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every row class in lessongate.db.tables."""


if SETTINGS.database_url:
    # Access checks read several small rows per request; keep the pool warm
    # rather than large.
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("DATABASE_URL not set, serving from in-memory stores")
        yield
        return

    logger.info("Database engine ready: %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
