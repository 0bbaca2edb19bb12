# coding: utf-8
"""
Price Refresh Job - stores the latest CoinMarketCap quotes.

Scheduled hourly at :00 by the worker (see src/tasks/scheduler.py).

Run once: python -m src.tasks.price_refresh

Crontab (hourly):
    0 * * * * cd /path && .venv/bin/python -m src.tasks.price_refresh
"""

import asyncio
import time
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.config import PRICE_REFRESH_MAX_DURATION_SEC
from src.database.engine import get_session_maker
from src.services.coinmarketcap_service import CoinMarketCapService, QuoteProviderError
from src.services.price_feed_service import refresh_live_prices


async def run_price_refresh(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    service: Optional[CoinMarketCapService] = None,
) -> Dict[str, Any]:
    """
    Job: fetch quotes and upsert live prices.

    Never raises; a failed refresh is retried by the next scheduled run.
    """
    session_maker = session_maker or get_session_maker()
    started = time.monotonic()

    try:
        async with session_maker() as session:
            upserted = await refresh_live_prices(session, service)
    except QuoteProviderError as e:
        logger.error(f"Error fetching live prices: {e}")
        return {"success": False, "error": str(e)}
    except Exception as e:
        logger.exception(f"Price refresh job failed: {e}")
        return {"success": False, "error": str(e)}

    duration = time.monotonic() - started
    if duration > PRICE_REFRESH_MAX_DURATION_SEC:
        logger.warning(
            f"Price refresh took {duration:.1f}s "
            f"(limit {PRICE_REFRESH_MAX_DURATION_SEC}s) - revaluation may see old prices"
        )

    return {"success": True, "upserted": upserted, "duration_sec": round(duration, 2)}


async def main():
    """
    Main cron job entry point
    """
    from config.logging import setup_logging
    from src.database.engine import dispose_engine

    setup_logging()

    logger.info("=" * 80)
    logger.info("Price Refresh Job - Starting")
    logger.info("=" * 80)

    try:
        result = await run_price_refresh()
        logger.info(f"Price Refresh Job - Result: {result}")
    finally:
        await dispose_engine()

    logger.info("=" * 80)


if __name__ == "__main__":
    asyncio.run(main())
