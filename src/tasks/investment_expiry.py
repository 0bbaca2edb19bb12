# coding: utf-8
"""
Investment Expiry Job - marks matured active investments as expired.

Run once: python -m src.tasks.investment_expiry

Crontab (hourly):
    0 * * * * cd /path && .venv/bin/python -m src.tasks.investment_expiry
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.engine import get_session_maker
from src.services.investment_service import expire_investments


async def run_investment_expiry(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Dict[str, Any]:
    """Job: expire active investments past their expiry date."""
    session_maker = session_maker or get_session_maker()
    try:
        async with session_maker() as session:
            expired = await expire_investments(session)
            return {"success": True, "expired": expired}
    except Exception as e:
        logger.exception(f"Investment expiry job failed: {e}")
        return {"success": False, "error": str(e)}


async def main():
    from config.logging import setup_logging
    from src.database.engine import dispose_engine

    setup_logging()

    logger.info("=" * 80)
    logger.info("Investment Expiry Job - Starting")
    logger.info("=" * 80)

    try:
        result = await run_investment_expiry()
        logger.info(f"Investment Expiry Job - Result: {result}")
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
