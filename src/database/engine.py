"""
Database engine for the Zenith settlement worker

One lazily created AsyncEngine per process. Jobs open short sessions
from get_session_maker(); nothing holds a session across scheduler ticks.

    python -m src.database.engine check   # SELECT 1
    python -m src.database.engine init    # create missing tables (dev only, prod uses alembic)
    python -m src.database.engine drop    # drop every table (refused in production)
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from loguru import logger
from sqlalchemy import inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from config.config import DATABASE_URL, ENVIRONMENT
from src.database.models import Base


engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool and driver options for the configured backend"""
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        return {}

    # At most two jobs overlap (refresh at :00 with expiry/cleanup), so the
    # pool stays small; pre-ping survives idle hours between settlements.
    options: Dict[str, Any] = {
        "poolclass": AsyncAdaptedQueuePool,
        "pool_size": 3,
        "max_overflow": 2,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }
    if backend == "postgresql":
        options["connect_args"] = {
            "server_settings": {"application_name": f"zenith_worker_{ENVIRONMENT}"},
        }
    return options


def get_engine(url: Optional[str] = None) -> AsyncEngine:
    """
    Return the process-wide engine, creating it on first use

    Args:
        url: Database URL for the first call (default: DATABASE_URL)
    """
    global engine

    if engine is None:
        database_url = url or DATABASE_URL
        engine = create_async_engine(database_url, **_engine_options(database_url))
        logger.info(f"Database engine created ({engine.dialect.name}, {ENVIRONMENT})")

    return engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        # Job results are read after commit
        AsyncSessionLocal = async_sessionmaker(get_engine(), expire_on_commit=False, autoflush=False)

    return AsyncSessionLocal


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Session for one unit of work, rolled back if the block raises

        async with get_session() as session:
            await settle_daily_profits(session)
    """
    async with get_session_maker()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> List[str]:
    """Create missing tables and return the names that were created"""
    async with get_engine().begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        await conn.run_sync(Base.metadata.create_all)

    created = [name for name in Base.metadata.tables if name not in existing]
    logger.info(f"Tables created: {', '.join(created) or 'none'}")
    return created


async def drop_db() -> None:
    """Drop every table. Refused when ENVIRONMENT is production."""
    if ENVIRONMENT == "production":
        raise RuntimeError("Refusing to drop the settlement database in production")

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.warning("All settlement tables dropped")


async def dispose_engine() -> None:
    """Close pooled connections; the next get_engine() starts fresh"""
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    AsyncSessionLocal = None


async def check_connection() -> bool:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False

    logger.info("Database connection check: OK")
    return True


async def main(command: str) -> int:
    try:
        if command == "check":
            return 0 if await check_connection() else 1
        if command == "init":
            await init_db()
        elif command == "drop":
            await drop_db()
        else:
            logger.error(f"Unknown command: {command} (expected check, init or drop)")
            return 2
        return 0
    finally:
        await dispose_engine()


if __name__ == "__main__":
    import asyncio
    import sys

    from config.logging import setup_logging

    setup_logging()
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "check")))
