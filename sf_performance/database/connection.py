"""
Engine and session lifecycle for the order store.

One AsyncEngine per process, created by init_database() from the
FastAPI lifespan (or a test fixture) and disposed by close_database().
Sessions opened through get_db() commit when the block exits cleanly and
roll back on any exception, which is what makes a replace-mode upload
all-or-nothing.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from sf_performance.config import get_settings
from sf_performance.database.models import Base

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None

NOT_READY = "Order store is not initialised; call init_database() first"


def _engine_options(url: str, echo: bool) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # An in-memory database lives on a single connection
        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["poolclass"] = NullPool
    return options


async def init_database(url: Optional[str] = None, create_tables: bool = True) -> AsyncEngine:
    """
    Create the engine, verify connectivity and create missing tables.

    Calling it again while an engine is open returns that engine.
    """
    global _engine, _sessions

    if _engine is not None:
        logger.warning("init_database called twice; reusing engine")
        return _engine

    settings = get_settings()
    url = url or settings.database.async_url
    engine = create_async_engine(url, **_engine_options(url, settings.database.echo))
    safe_url = engine.url.render_as_string(hide_password=True)

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
    except Exception:
        logger.exception("Order store unreachable", url=safe_url)
        await engine.dispose()
        raise

    _engine = engine
    _sessions = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    logger.info("Order store ready", url=safe_url, create_tables=create_tables)
    return engine


async def close_database() -> None:
    """Dispose the engine; safe to call when nothing is open."""
    global _engine, _sessions

    if _engine is None:
        return
    await _engine.dispose()
    _engine, _sessions = None, None
    logger.info("Order store closed")


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError(NOT_READY)
    return _engine


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session scoped to one unit of work.

        async with get_db() as db:
            await OrderStore(db).insert_new(records)
    """
    if _sessions is None:
        raise RuntimeError(NOT_READY)

    async with _sessions() as session:
        try:
            yield session
        except Exception as exc:
            await session.rollback()
            logger.warning("Rolled back order store session", error_type=type(exc).__name__, error=str(exc))
            raise
        else:
            await session.commit()


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session from get_db()."""
    async with get_db() as session:
        yield session


async def check_database_health() -> Dict[str, Any]:
    """Run a trivial query and report status plus round-trip latency."""
    started = time.perf_counter()
    try:
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        return {"status": "unhealthy", "error": str(exc)}
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
