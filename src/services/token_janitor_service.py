# coding: utf-8
"""
Admin refresh token janitor
"""
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import AdminRefreshToken
from src.utils.timeutils import utcnow


async def purge_expired_refresh_tokens(
    session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """
    Delete every refresh token whose expiry_date is in the past

    Args:
        session: Database session
        now: Reference time (default: current UTC time)

    Returns:
        Number of deleted tokens
    """
    now = now or utcnow()

    result = await session.execute(
        delete(AdminRefreshToken)
        .where(AdminRefreshToken.expiry_date < now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    deleted = result.rowcount or 0
    logger.info(f"Expired admin tokens deleted: {deleted}")
    return deleted
