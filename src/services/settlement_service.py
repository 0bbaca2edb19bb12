# coding: utf-8
"""
Daily profit settlement - moves accrued profits into the balance
"""
from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import Wallet


async def settle_daily_profits(session: AsyncSession) -> int:
    """
    Credit every wallet's accrued profits to its balance

    balance = balance + profits, profits = 0 in a single UPDATE, so no
    profit credited concurrently can be lost. Wallets without profits are
    left alone, which makes a second run a no-op.

    Args:
        session: Database session

    Returns:
        Number of wallets settled
    """
    result = await session.execute(
        update(Wallet)
        .where(Wallet.profits != 0)
        .values(balance=Wallet.balance + Wallet.profits, profits=0)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    settled = result.rowcount or 0
    logger.info(f"Daily earned profits settled for {settled} wallets")
    return settled
