# coding: utf-8
"""
Wallet Revaluation Job - reprices crypto holdings after a price refresh.

Scheduled hourly at :10, after the :00 price refresh. The job only runs
when a price refresh completed since the last revaluation (job markers),
so an overrun or failed refresh is never revalued against twice.

Run once: python -m src.tasks.wallet_revaluation [--force]
"""

import asyncio
import sys
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.crud import (
    get_marker,
    set_marker,
    MARKER_PRICES_REFRESHED,
    MARKER_WALLETS_REVALUED,
)
from src.database.engine import get_session_maker
from src.services.wallet_valuation_service import revalue_wallets


async def run_wallet_revaluation(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Job: revalue all wallets against the latest refreshed prices.

    Args:
        session_maker: Session factory (default: the worker's)
        force: Ignore the job markers (manual runs)
    """
    session_maker = session_maker or get_session_maker()

    try:
        async with session_maker() as session:
            prices_refreshed = await get_marker(session, MARKER_PRICES_REFRESHED)
            wallets_revalued = await get_marker(session, MARKER_WALLETS_REVALUED)

            if not force:
                if prices_refreshed is None:
                    logger.info("Wallet revaluation skipped: prices were never refreshed")
                    return {"success": True, "skipped": True, "reason": "no_price_refresh"}
                if wallets_revalued is not None and prices_refreshed <= wallets_revalued:
                    logger.info(
                        "Wallet revaluation skipped: no price refresh since "
                        f"{wallets_revalued.isoformat()}"
                    )
                    return {"success": True, "skipped": True, "reason": "prices_not_refreshed"}

            summary = await revalue_wallets(session)
            if summary.skipped:
                return {"success": False, "skipped": True, "reason": "no_prices"}

            if prices_refreshed is not None:
                await set_marker(session, MARKER_WALLETS_REVALUED, prices_refreshed)

            return {
                "success": summary.failed == 0,
                "skipped": False,
                "updated": summary.updated,
                "failed": summary.failed,
            }
    except Exception as e:
        logger.exception(f"Wallet revaluation job failed: {e}")
        return {"success": False, "error": str(e)}


async def main():
    """
    Main cron job entry point
    """
    from config.logging import setup_logging
    from src.database.engine import dispose_engine

    setup_logging()
    force = "--force" in sys.argv[1:]

    logger.info("=" * 80)
    logger.info(f"Wallet Revaluation Job - Starting{' (forced)' if force else ''}")
    logger.info("=" * 80)

    try:
        result = await run_wallet_revaluation(force=force)
        logger.info(f"Wallet Revaluation Job - Result: {result}")
    finally:
        await dispose_engine()

    logger.info("=" * 80)


if __name__ == "__main__":
    asyncio.run(main())
