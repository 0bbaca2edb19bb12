"""
Zenith Settlement Worker - Main Entry Point

Runs the scheduled settlement jobs (price refresh, wallet revaluation,
investment expiry, token cleanup, daily profit settlement) until SIGINT
or SIGTERM.
"""

import asyncio
import signal
import sys

from loguru import logger

from config.config import validate_config
from config.logging import setup_logging
from config.sentry import init_sentry
from src.database.engine import check_connection, dispose_engine
from src.tasks.scheduler import SettlementScheduler


async def main() -> None:
    """Main worker function"""

    setup_logging()

    # Initialize Sentry error monitoring
    init_sentry()

    try:
        validate_config()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("Configuration validated successfully")

    if not await check_connection():
        logger.error("Database is not reachable, worker not started")
        await dispose_engine()
        sys.exit(1)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still stops asyncio.run()
            pass

    scheduler = SettlementScheduler()
    scheduler.start()

    try:
        await stop_event.wait()
        logger.info("Shutdown signal received")
    finally:
        scheduler.stop()
        await dispose_engine()
        logger.info("Database connections closed")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
