"""
CRUD operations for the Zenith settlement worker

Async database operations using SQLAlchemy 2.0

Every wallet mutation here is a field-scoped UPDATE with column
expressions (`balance = balance + :amount`), so concurrent writers never
overwrite each other's buckets.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from config.config import REFRESH_TOKEN_TTL_DAYS
from src.core.enums import AffectedBalance, CryptoAsset
from src.database.models import (
    User,
    Wallet,
    LivePrice,
    JobMarker,
    Plan,
    Investment,
    InvestmentStatus,
    LiveTrade,
    TradeAction,
    TradeStatus,
    MarketType,
    AdminRefreshToken,
    Topup,
    Deposit,
    WithdrawalRequest,
    LedgerStatus,
)
from src.utils.timeutils import utcnow, days_from_now, as_utc


class InsufficientBalanceError(Exception):
    """Raised when a withdrawal exceeds the wallet balance"""
    pass


class LedgerStateError(Exception):
    """Raised when a deposit/withdrawal is not in a confirmable state"""
    pass


class LiveTradeValidationError(ValueError):
    """Raised when stop loss / take profit are on the wrong side of entry"""
    pass


# Top-up bucket -> wallet column
AFFECTED_BALANCE_COLUMNS: Dict[AffectedBalance, InstrumentedAttribute] = {
    AffectedBalance.BALANCE: Wallet.balance,
    AffectedBalance.TOTAL_DEPOSIT: Wallet.total_deposit,
    AffectedBalance.TOTAL_BONUS: Wallet.total_bonus,
    AffectedBalance.PROFITS: Wallet.profits,
    AffectedBalance.WITHDRAWN: Wallet.withdrawn,
    AffectedBalance.REFERRAL: Wallet.referral,
    AffectedBalance.CRYPTO_BTC: Wallet.btc,
    AffectedBalance.CRYPTO_ETH: Wallet.eth,
    AffectedBalance.CRYPTO_SOLANA: Wallet.solana,
    AffectedBalance.CRYPTO_TETHER: Wallet.tether,
    AffectedBalance.CRYPTO_XRP: Wallet.xrp,
}

# Crypto holding -> wallet quantity column
CRYPTO_ASSET_COLUMNS: Dict[CryptoAsset, InstrumentedAttribute] = {
    CryptoAsset.BTC: Wallet.btc,
    CryptoAsset.ETH: Wallet.eth,
    CryptoAsset.SOLANA: Wallet.solana,
    CryptoAsset.TETHER: Wallet.tether,
    CryptoAsset.XRP: Wallet.xrp,
}

# Job marker names
MARKER_PRICES_REFRESHED = "prices_refreshed"
MARKER_WALLETS_REVALUED = "wallets_revalued"


# ===========================
# USER OPERATIONS
# ===========================


async def create_user(session: AsyncSession, full_name: str, email: str) -> User:
    """
    Create new user together with its zeroed wallet

    Args:
        session: Database session
        full_name: Customer full name
        email: Login email (stored lowercase)

    Returns:
        Created User model
    """
    user = User(full_name=full_name, email=email.strip().lower())
    user.wallet = Wallet()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"User created: {user.id} ({user.email})")
    return user


async def get_user(session: AsyncSession, user_id: int) -> Optional[User]:
    """Get user by ID"""
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """Get user by email (case-insensitive)"""
    stmt = select(User).where(User.email == email.strip().lower())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_wallet(session: AsyncSession, user_id: int) -> Optional[Wallet]:
    """
    Get a fresh copy of the user's wallet

    Wallet rows are changed through bulk UPDATEs, so the identity map is
    bypassed to avoid returning stale values.
    """
    stmt = (
        select(Wallet)
        .where(Wallet.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


# ===========================
# WALLET LEDGER OPERATIONS
# ===========================


async def apply_topup(
    session: AsyncSession,
    user_id: int,
    amount: Decimal,
    description: str,
    affected_balance: AffectedBalance,
) -> Optional[Topup]:
    """
    Credit one wallet bucket and record the top-up

    Args:
        session: Database session
        user_id: Wallet owner
        amount: Amount to credit (fiat, or a quantity for crypto buckets)
        description: Reason shown to the customer
        affected_balance: Bucket to credit

    Returns:
        Created Topup, or None if the user does not exist

    Raises:
        ValueError: If amount is not positive
    """
    amount = Decimal(amount)
    if amount <= 0:
        raise ValueError(f"Top-up amount must be positive, got {amount}")

    affected_balance = AffectedBalance(affected_balance)

    user = await get_user(session, user_id)
    if not user:
        logger.warning(f"Top-up skipped: user {user_id} not found")
        return None

    column = AFFECTED_BALANCE_COLUMNS[affected_balance]
    values = {column.key: column + amount}
    if not affected_balance.is_crypto:
        values[Wallet.topup.key] = Wallet.topup + amount

    await session.execute(
        update(Wallet).where(Wallet.user_id == user_id).values(**values)
    )

    topup = Topup(
        user_id=user_id,
        user_full_name=user.full_name,
        amount=amount,
        description=description,
        affected_balance=affected_balance.value,
    )
    session.add(topup)
    await session.commit()
    await session.refresh(topup)

    logger.info(f"Top-up {topup.id}: +{amount} to {affected_balance.value} for user {user_id}")
    return topup


async def create_deposit(
    session: AsyncSession,
    user_id: int,
    original_amount: Decimal,
    updated_amount: Optional[Decimal] = None,
) -> Deposit:
    """
    Record a pending deposit

    Args:
        session: Database session
        user_id: Depositing user
        original_amount: Amount the customer sent
        updated_amount: Amount to credit (defaults to original_amount);
            anything above original_amount is booked as bonus

    Returns:
        Created Deposit model
    """
    deposit = Deposit(
        user_id=user_id,
        original_amount=Decimal(original_amount),
        updated_amount=Decimal(
            original_amount if updated_amount is None else updated_amount
        ),
        status=LedgerStatus.PENDING.value,
    )
    session.add(deposit)
    await session.commit()
    await session.refresh(deposit)

    logger.info(f"Deposit {deposit.id} created for user {user_id}: {deposit.original_amount}")
    return deposit


async def confirm_deposit(session: AsyncSession, deposit_id: int) -> Deposit:
    """
    Confirm a pending deposit and credit the wallet

    balance += updated_amount, total_deposit += original_amount,
    total_bonus += updated_amount - original_amount

    Args:
        session: Database session
        deposit_id: Deposit ID

    Returns:
        Completed Deposit model

    Raises:
        ValueError: If the deposit or its wallet does not exist
        LedgerStateError: If the deposit is not pending
    """
    deposit = await session.get(Deposit, deposit_id)
    if not deposit:
        raise ValueError(f"Deposit {deposit_id} not found")

    if deposit.status != LedgerStatus.PENDING.value:
        raise LedgerStateError(
            f"Deposit {deposit_id} is {deposit.status}, only pending deposits can be confirmed"
        )

    bonus = deposit.updated_amount - deposit.original_amount
    result = await session.execute(
        update(Wallet)
        .where(Wallet.user_id == deposit.user_id)
        .values(
            balance=Wallet.balance + deposit.updated_amount,
            total_deposit=Wallet.total_deposit + deposit.original_amount,
            total_bonus=Wallet.total_bonus + bonus,
        )
    )
    if result.rowcount == 0:
        await session.rollback()
        raise ValueError(f"Wallet for user {deposit.user_id} not found")

    deposit.status = LedgerStatus.COMPLETED.value
    await session.commit()
    await session.refresh(deposit)

    logger.info(
        f"Deposit {deposit_id} confirmed: +{deposit.updated_amount} "
        f"(bonus {bonus}) for user {deposit.user_id}"
    )
    return deposit


async def create_withdrawal_request(
    session: AsyncSession, user_id: int, amount: Decimal
) -> WithdrawalRequest:
    """Record a pending withdrawal request"""
    amount = Decimal(amount)
    if amount <= 0:
        raise ValueError(f"Withdrawal amount must be positive, got {amount}")

    request = WithdrawalRequest(
        user_id=user_id, amount=amount, status=LedgerStatus.PENDING.value
    )
    session.add(request)
    await session.commit()
    await session.refresh(request)

    logger.info(f"Withdrawal request {request.id} created for user {user_id}: {amount}")
    return request


async def confirm_withdrawal(
    session: AsyncSession, withdrawal_id: int
) -> WithdrawalRequest:
    """
    Confirm a pending withdrawal and debit the wallet

    The debit is conditional (WHERE balance >= amount), so two concurrent
    confirmations can never push the balance below zero.

    Args:
        session: Database session
        withdrawal_id: WithdrawalRequest ID

    Returns:
        Completed WithdrawalRequest model

    Raises:
        ValueError: If the request does not exist
        LedgerStateError: If the request is not pending
        InsufficientBalanceError: If the balance does not cover the amount
    """
    request = await session.get(WithdrawalRequest, withdrawal_id)
    if not request:
        raise ValueError(f"Withdrawal request {withdrawal_id} not found")

    if request.status != LedgerStatus.PENDING.value:
        raise LedgerStateError(
            f"Withdrawal {withdrawal_id} is {request.status}, only pending requests can be confirmed"
        )

    result = await session.execute(
        update(Wallet)
        .where(Wallet.user_id == request.user_id)
        .where(Wallet.balance >= request.amount)
        .values(
            balance=Wallet.balance - request.amount,
            withdrawn=Wallet.withdrawn + request.amount,
        )
    )
    if result.rowcount == 0:
        await session.rollback()
        raise InsufficientBalanceError(
            f"Withdrawal {withdrawal_id} of {request.amount} exceeds the balance of user {request.user_id}"
        )

    request.status = LedgerStatus.COMPLETED.value
    await session.commit()
    await session.refresh(request)

    logger.info(f"Withdrawal {withdrawal_id} confirmed: -{request.amount} for user {request.user_id}")
    return request


# ===========================
# LIVE PRICE OPERATIONS
# ===========================


async def get_live_prices(session: AsyncSession) -> List[LivePrice]:
    """Get all stored price rows"""
    stmt = (
        select(LivePrice)
        .order_by(LivePrice.asset_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_marker(session: AsyncSession, name: str) -> Optional[datetime]:
    """
    Get the last completion time recorded for a job

    Returns:
        Timestamp (UTC) or None if the job never completed
    """
    marker = await session.get(JobMarker, name, populate_existing=True)
    return as_utc(marker.marked_at) if marker else None


async def set_marker(
    session: AsyncSession, name: str, marked_at: Optional[datetime] = None
) -> datetime:
    """
    Record a job completion (commits)

    Returns:
        The recorded timestamp
    """
    marked_at = marked_at or utcnow()
    marker = await session.get(JobMarker, name)
    if marker:
        marker.marked_at = marked_at
    else:
        session.add(JobMarker(name=name, marked_at=marked_at))
    await session.commit()
    return marked_at


# ===========================
# PLAN & INVESTMENT OPERATIONS
# ===========================


async def create_plan(
    session: AsyncSession,
    name: str,
    limit_min: Decimal,
    limit_max: Decimal,
    roi_percentage: Decimal,
    duration_days: int,
    details: str,
    frequency: int = 1,
) -> Plan:
    """
    Create investment plan

    Raises:
        ValueError: If limits, ROI or duration are invalid
    """
    limit_min, limit_max = Decimal(limit_min), Decimal(limit_max)
    roi_percentage = Decimal(roi_percentage)

    if limit_min < 0 or limit_min >= limit_max:
        raise ValueError(f"Plan limits must satisfy 0 <= min < max, got {limit_min}..{limit_max}")
    if roi_percentage < 0:
        raise ValueError("Plan ROI cannot be negative")
    if duration_days < 0:
        raise ValueError("Plan duration cannot be negative")

    plan = Plan(
        name=name,
        limit_min=limit_min,
        limit_max=limit_max,
        roi_percentage=roi_percentage,
        frequency=frequency,
        duration_days=duration_days,
        details=details,
    )
    session.add(plan)
    await session.commit()
    await session.refresh(plan)

    logger.info(f"Plan created: {plan.id} ({name}, {duration_days} days)")
    return plan


async def get_plan(session: AsyncSession, plan_id: int) -> Optional[Plan]:
    """Get plan by ID"""
    return await session.get(Plan, plan_id)


async def create_investment(
    session: AsyncSession, user: User, plan: Plan, amount: Decimal
) -> Investment:
    """
    Create a pending investment with a snapshot of the plan

    Args:
        session: Database session
        user: Investing user
        plan: Plan to snapshot
        amount: Invested amount (must be within the plan limits)

    Returns:
        Created Investment model

    Raises:
        ValueError: If amount is outside the plan limits
    """
    amount = Decimal(amount)
    if not plan.limit_min <= amount <= plan.limit_max:
        raise ValueError(
            f"Amount {amount} outside plan limits {plan.limit_min}..{plan.limit_max}"
        )

    investment = Investment(
        plan_name=plan.name,
        plan_limit_min=plan.limit_min,
        plan_limit_max=plan.limit_max,
        plan_roi_percentage=plan.roi_percentage,
        plan_duration_days=plan.duration_days,
        plan_details=plan.details,
        user_id=user.id,
        user_email=user.email,
        amount=amount,
        frequency=plan.frequency,
        status=InvestmentStatus.PENDING.value,
    )
    session.add(investment)
    await session.commit()
    await session.refresh(investment)

    logger.info(f"Investment {investment.id} created: {amount} in '{plan.name}' for user {user.id}")
    return investment


async def get_investment(session: AsyncSession, investment_id: int) -> Optional[Investment]:
    """Get a fresh copy of an investment"""
    return await session.get(Investment, investment_id, populate_existing=True)


# ===========================
# LIVE TRADE OPERATIONS
# ===========================


def validate_trade_levels(
    action: TradeAction, entry_price: Decimal, stop_loss: Decimal, take_profit: Decimal
) -> None:
    """
    Check stop loss / take profit placement for the trade direction

    buy:  stop_loss < entry_price < take_profit
    sell: take_profit < entry_price < stop_loss

    Raises:
        LiveTradeValidationError: If the levels are on the wrong side
    """
    if action == TradeAction.BUY:
        if stop_loss >= entry_price:
            raise LiveTradeValidationError("Stop loss must be less than entry price for buy")
        if take_profit <= entry_price:
            raise LiveTradeValidationError("Take profit must be greater than entry price for buy")
    else:
        if stop_loss <= entry_price:
            raise LiveTradeValidationError("Stop loss must be greater than entry price for sell")
        if take_profit >= entry_price:
            raise LiveTradeValidationError("Take profit must be less than entry price for sell")


async def create_live_trade(
    session: AsyncSession,
    user: User,
    market: MarketType,
    currency_pair: str,
    action: TradeAction,
    entry_price: Decimal,
    stop_loss: Decimal,
    take_profit: Decimal,
    time: int = 1,
) -> LiveTrade:
    """
    Open a live trade for a user

    Raises:
        LiveTradeValidationError: If levels contradict the direction
        ValueError: If market or action are unknown
    """
    market, action = MarketType(market), TradeAction(action)
    entry_price, stop_loss, take_profit = (
        Decimal(entry_price),
        Decimal(stop_loss),
        Decimal(take_profit),
    )
    validate_trade_levels(action, entry_price, stop_loss, take_profit)

    trade = LiveTrade(
        type=market.value,
        currency_pair=currency_pair.upper(),
        action=action.value,
        status=TradeStatus.ACTIVE.value,
        entry_price=entry_price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        time=time,
        user_id=user.id,
        user_email=user.email,
    )
    session.add(trade)
    await session.commit()
    await session.refresh(trade)

    logger.info(f"Live trade {trade.id} opened: {action.value} {trade.currency_pair} for user {user.id}")
    return trade


async def get_live_trade(session: AsyncSession, trade_id: int) -> Optional[LiveTrade]:
    """Get a fresh copy of a live trade"""
    return await session.get(LiveTrade, trade_id, populate_existing=True)


# ===========================
# REFRESH TOKEN OPERATIONS
# ===========================


async def create_refresh_token(
    session: AsyncSession, token: str, ttl_days: Optional[int] = None
) -> AdminRefreshToken:
    """
    Store an issued admin refresh token

    Args:
        session: Database session
        token: Opaque token string
        ttl_days: Lifetime in days (default REFRESH_TOKEN_TTL_DAYS)

    Returns:
        Created AdminRefreshToken model
    """
    record = AdminRefreshToken(
        token=token,
        expiry_date=days_from_now(ttl_days if ttl_days is not None else REFRESH_TOKEN_TTL_DAYS),
    )
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def get_refresh_token(session: AsyncSession, token: str) -> Optional[AdminRefreshToken]:
    """Get refresh token record by token string"""
    stmt = select(AdminRefreshToken).where(AdminRefreshToken.token == token)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def delete_refresh_token(session: AsyncSession, token: str) -> bool:
    """
    Delete a refresh token (logout); deleting a missing token is not an error

    Returns:
        True if a token was deleted
    """
    result = await session.execute(
        delete(AdminRefreshToken).where(AdminRefreshToken.token == token)
    )
    await session.commit()

    deleted = result.rowcount > 0
    if deleted:
        logger.info("Admin refresh token revoked")
    return deleted
