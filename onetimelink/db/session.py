# onetimelink/db/session.py
from __future__ import annotations

"""
onetimelink — Database Engine & Session Factory

The engine and session factory are built explicitly (in the app lifespan) and
stored on `app.state`; repositories open short-lived sessions from it
per operation, never through module-level globals.
"""

from typing import Optional, Tuple
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from onetimelink.core.config import settings

logger = logging.getLogger(__name__)

# Pool knobs
_POOL_PRE_PING = True
_POOL_RECYCLE = 1800
_POOL_TIMEOUT = 30


def create_engine_and_sessionmaker(
    url: Optional[str] = None,
    **engine_kwargs,
) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build the async engine + session factory (no connection is opened yet)."""
    dsn = url or settings.ASYNC_DATABASE_URL
    kwargs = dict(engine_kwargs)
    if not dsn.startswith("sqlite"):
        kwargs.setdefault("pool_pre_ping", _POOL_PRE_PING)
        kwargs.setdefault("pool_recycle", _POOL_RECYCLE)
        kwargs.setdefault("pool_timeout", _POOL_TIMEOUT)
        kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
    engine = create_async_engine(dsn, echo=False, **kwargs)
    session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_maker


async def db_healthcheck(engine: AsyncEngine) -> bool:
    """Quick SELECT 1 to verify DB connectivity (used by /readyz)."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("DB healthcheck failed")
        return False


__all__ = ["create_engine_and_sessionmaker", "db_healthcheck"]
