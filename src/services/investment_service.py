# coding: utf-8
"""
Investment lifecycle

pending -> active -> expired
pending -> failed

Activation stamps start_date / expiry_date exactly once; expiry is only
ever applied by the scheduled settler.
"""
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import get_investment
from src.database.models import Investment, InvestmentStatus
from src.utils.timeutils import utcnow


class InvalidStatusTransition(ValueError):
    """Raised for status changes the lifecycle does not allow"""
    pass


def apply_activation_dates(investment: Investment, now: Optional[datetime] = None) -> bool:
    """
    Stamp start/expiry dates on an investment that is (becoming) active

    Does nothing once expiry_date is set, so the derivation fires at
    most once per investment.

    Returns:
        True if expiry_date was derived now
    """
    if investment.status != InvestmentStatus.ACTIVE.value or investment.expiry_date is not None:
        return False

    now = now or utcnow()
    if investment.start_date is None:
        investment.start_date = now
    investment.expiry_date = investment.start_date + timedelta(
        days=investment.plan_duration_days
    )
    return True


async def update_investment_status(
    session: AsyncSession,
    investment_id: int,
    status: InvestmentStatus,
    now: Optional[datetime] = None,
) -> Optional[Investment]:
    """
    Move an investment to a new status (admin action)

    Args:
        session: Database session
        investment_id: Investment ID
        status: Target status (pending, active or failed)
        now: Activation time override

    Returns:
        Updated Investment, or None if it does not exist

    Raises:
        InvalidStatusTransition: When leaving a terminal status or setting
            "expired" by hand
    """
    status = InvestmentStatus(status)

    investment = await get_investment(session, investment_id)
    if not investment:
        logger.warning(f"Investment {investment_id} not found")
        return None

    current = InvestmentStatus(investment.status)
    if current == status:
        return investment

    if current in InvestmentStatus.terminal():
        raise InvalidStatusTransition(
            f"Investment {investment_id} is {current.value} and cannot change status"
        )
    if status == InvestmentStatus.EXPIRED:
        raise InvalidStatusTransition("Investments expire through the scheduled settler only")

    investment.status = status.value
    activated = apply_activation_dates(investment, now)

    await session.commit()
    await session.refresh(investment)

    if activated:
        logger.info(
            f"Investment {investment_id} activated, expires {investment.expiry_date.isoformat()}"
        )
    else:
        logger.info(f"Investment {investment_id} status: {current.value} -> {status.value}")
    return investment


async def expire_investments(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Expire every active investment whose expiry_date has passed

    One bulk UPDATE; running it again with the same `now` changes nothing.

    Args:
        session: Database session
        now: Reference time (default: current UTC time)

    Returns:
        Number of investments expired
    """
    now = now or utcnow()

    result = await session.execute(
        update(Investment)
        .where(Investment.status == InvestmentStatus.ACTIVE.value)
        .where(Investment.expiry_date <= now)
        .values(status=InvestmentStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    expired = result.rowcount or 0
    logger.info(f"Expired {expired} investments")
    return expired
