# coding: utf-8
"""
Token Cleanup Job - deletes expired admin refresh tokens.

Run once: python -m src.tasks.token_cleanup
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.engine import get_session_maker
from src.services.token_janitor_service import purge_expired_refresh_tokens


async def run_token_cleanup(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Dict[str, Any]:
    """Job: purge expired refresh tokens."""
    session_maker = session_maker or get_session_maker()
    try:
        async with session_maker() as session:
            deleted = await purge_expired_refresh_tokens(session)
            return {"success": True, "deleted": deleted}
    except Exception as e:
        logger.exception(f"Token cleanup job failed: {e}")
        return {"success": False, "error": str(e)}


async def main():
    from config.logging import setup_logging
    from src.database.engine import dispose_engine

    setup_logging()

    try:
        result = await run_token_cleanup()
        logger.info(f"Token Cleanup Job - Result: {result}")
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
