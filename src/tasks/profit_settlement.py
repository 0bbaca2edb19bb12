# coding: utf-8
"""
Profit Settlement Job - daily at midnight (scheduler time zone).

Moves every wallet's accrued profits into its balance.

Run once: python -m src.tasks.profit_settlement

Crontab (daily):
    0 0 * * * cd /path && .venv/bin/python -m src.tasks.profit_settlement
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.engine import get_session_maker
from src.services.settlement_service import settle_daily_profits


async def run_profit_settlement(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Dict[str, Any]:
    """Job: settle accrued profits."""
    session_maker = session_maker or get_session_maker()
    try:
        async with session_maker() as session:
            settled = await settle_daily_profits(session)
            return {"success": True, "settled": settled}
    except Exception as e:
        logger.exception(f"Profit settlement job failed: {e}")
        return {"success": False, "error": str(e)}


async def main():
    from config.logging import setup_logging
    from src.database.engine import dispose_engine

    setup_logging()

    logger.info("=" * 80)
    logger.info("Profit Settlement Job - Starting")
    logger.info("=" * 80)

    try:
        result = await run_profit_settlement()
        logger.info(f"Profit Settlement Job - Result: {result}")
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
