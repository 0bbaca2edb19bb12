# coding: utf-8
"""
Trade Closer - closes a live trade and credits its result to the wallet

The result is credited to `profits` only; the daily settlement is the
sole writer moving profits into the spendable balance.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from config.sentry import capture_message
from src.database.crud import get_live_trade
from src.database.models import LiveTrade, TradeStatus, Wallet
from src.utils.timeutils import utcnow, as_utc


# Statuses a live trade can be closed with
CLOSING_STATUSES = frozenset({TradeStatus.COMPLETED, TradeStatus.CANCELED})

class TradeCloseStatus(str, Enum):
    """Outcome of a close request"""

    CLOSED = "closed"  # Trade closed, profit/loss credited
    CLOSED_WITHOUT_CREDIT = "closed_without_credit"  # Negative exit price, wallet untouched
    CREDIT_FAILED = "credit_failed"  # Trade closed, wallet credit failed - reconcile by hand
    NOT_FOUND = "not_found"
    ALREADY_CLOSED = "already_closed"  # Trade was not active, nothing changed


@dataclass
class TradeCloseResult:
    status: TradeCloseStatus
    trade: Optional[LiveTrade] = None
    error: Optional[str] = None

    @property
    def trade_closed(self) -> bool:
        return self.status in (
            TradeCloseStatus.CLOSED,
            TradeCloseStatus.CLOSED_WITHOUT_CREDIT,
            TradeCloseStatus.CREDIT_FAILED,
        )


def trade_duration_seconds(created_at: datetime, closed_at: datetime) -> Decimal:
    """Seconds between opening and closing, millisecond precision"""
    delta = as_utc(closed_at) - as_utc(created_at)
    return Decimal(str(round(delta.total_seconds(), 3)))


async def credit_trade_profit(
    session: AsyncSession, user_id: int, profit_loss: Decimal
) -> bool:
    """
    Add a trade result to the owner's accrued profits (commits)

    Returns:
        True if a wallet row was updated
    """
    result = await session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(profits=Wallet.profits + profit_loss)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount > 0


async def close_live_trade(
    session: AsyncSession,
    trade_id: int,
    status: TradeStatus,
    exit_price: Decimal,
    profit_loss: Decimal,
    now: Optional[datetime] = None,
) -> TradeCloseResult:
    """
    Close a live trade and credit its profit/loss

    A negative exit price marks a data-entry correction: the trade is
    closed but the wallet is not credited.

    Args:
        session: Database session
        trade_id: LiveTrade ID
        status: Closing status (completed or canceled)
        exit_price: Exit price
        profit_loss: Realized profit (negative for a loss)
        now: Close time override

    Returns:
        TradeCloseResult; failures are reported, never raised

    Raises:
        ValueError: If status is not a closing status
    """
    status = TradeStatus(status)
    if status not in CLOSING_STATUSES:
        raise ValueError(f"Cannot close a live trade as {status.value}")
    exit_price, profit_loss = Decimal(exit_price), Decimal(profit_loss)

    trade = await get_live_trade(session, trade_id)
    if not trade:
        logger.warning(f"Live trade {trade_id} not found")
        return TradeCloseResult(TradeCloseStatus.NOT_FOUND, error="Live trade not found")

    if trade.status != TradeStatus.ACTIVE.value:
        logger.warning(f"Live trade {trade_id} is already {trade.status}")
        return TradeCloseResult(
            TradeCloseStatus.ALREADY_CLOSED, trade=trade, error=f"Trade is already {trade.status}"
        )

    closed_at = now or utcnow()
    trade.status = status.value
    trade.exit_price = exit_price
    trade.profit_loss = profit_loss
    trade.closed_at = closed_at
    trade.duration = trade_duration_seconds(trade.created_at, closed_at)
    await session.commit()

    if exit_price < 0:
        logger.info(f"Live trade {trade_id} closed without wallet credit (exit price {exit_price})")
        return TradeCloseResult(TradeCloseStatus.CLOSED_WITHOUT_CREDIT, trade=trade)

    user_id = trade.user_id
    try:
        credited = await credit_trade_profit(session, user_id, profit_loss)
        error = None if credited else f"Wallet for user {user_id} not found"
    except Exception as e:
        # The close itself is already committed
        await session.rollback()
        await session.refresh(trade)
        credited = False
        error = f"Wallet credit failed: {e}"

    if not credited:
        logger.error(f"Live trade {trade_id} closed but credit of {profit_loss} failed: {error}")
        capture_message(
            "Live trade closed without profit credit",
            level="error",
            trade_id=trade_id,
            user_id=user_id,
            profit_loss=str(profit_loss),
            reason=error,
        )
        return TradeCloseResult(TradeCloseStatus.CREDIT_FAILED, trade=trade, error=error)

    logger.info(f"Live trade {trade_id} closed, {profit_loss} credited to user {user_id}")
    return TradeCloseResult(TradeCloseStatus.CLOSED, trade=trade)
