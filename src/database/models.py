"""
Database models for the Zenith settlement worker

SQLAlchemy 2.0 models with full type hints
"""

from datetime import datetime, UTC
from typing import Optional
from enum import Enum
from decimal import Decimal

from sqlalchemy import (
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    Numeric,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from config.config import REFRESH_TOKEN_TTL_DAYS
from src.utils.timeutils import utcnow, days_from_now


# Money and asset quantities
MONEY = Numeric(24, 8)
PERCENT = Numeric(12, 2)
# Unbounded ratio: a delta of up to 1e16 on a balance of 1e-8 is 1e26 %
FLUCTUATION = Numeric(32, 2)


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# ===========================
# ENUMS
# ===========================


class InvestmentStatus(str, Enum):
    """Investment lifecycle status"""

    PENDING = "pending"  # Created, awaiting admin approval
    ACTIVE = "active"  # Running, expiry_date set
    FAILED = "failed"  # Rejected (terminal)
    EXPIRED = "expired"  # Ran its full duration (terminal, set by settler only)

    @classmethod
    def terminal(cls) -> frozenset["InvestmentStatus"]:
        return frozenset({cls.FAILED, cls.EXPIRED})


class TradeStatus(str, Enum):
    """Live trade status"""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"


class TradeAction(str, Enum):
    """Live trade direction"""

    BUY = "buy"
    SELL = "sell"


class MarketType(str, Enum):
    """Market a live trade or copy trade belongs to"""

    CRYPTOCURRENCY = "cryptocurrency"
    FOREX = "forex"
    STOCK = "stock"


class LedgerStatus(str, Enum):
    """Deposit / withdrawal request status"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# ===========================
# MODELS
# ===========================


class User(Base):
    """
    Customer account

    Owns exactly one Wallet (created together with the user).
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Customer full name"
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False, comment="Login email (lowercase)"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Registration timestamp",
    )

    # Relationships
    wallet = relationship(
        "Wallet",
        back_populates="user",
        uselist=False,  # One-to-one relationship
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class Wallet(Base):
    """
    Customer wallet - fiat buckets plus crypto holdings

    Tracks:
    - Spendable balance and accrued (unsettled) profits
    - Cumulative counters (deposits, bonuses, withdrawals, referral, top-ups)
    - Crypto holding quantities and their last fiat valuation
    - Fluctuation (%) caused by the last crypto revaluation

    Every mutation goes through a field-scoped UPDATE; the row is never
    replaced wholesale.
    """

    __tablename__ = "wallets"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Owning user",
    )

    balance: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Spendable fiat balance"
    )
    profits: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Accrued profit awaiting daily settlement"
    )
    total_deposit: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Total confirmed deposits"
    )
    total_bonus: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Total deposit bonuses"
    )
    withdrawn: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Total confirmed withdrawals"
    )
    referral: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Referral earnings"
    )
    topup: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Total admin top-ups"
    )
    fluctuation: Mapped[Decimal] = mapped_column(
        FLUCTUATION, default=Decimal("0"), nullable=False, comment="Balance change (%) from last revaluation"
    )

    # Crypto
    crypto_balance: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Fiat value of crypto holdings at last revaluation"
    )
    btc: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Bitcoin quantity"
    )
    eth: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Ethereum quantity"
    )
    solana: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Solana quantity"
    )
    tether: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="Tether quantity"
    )
    xrp: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False, comment="XRP quantity"
    )

    user = relationship("User", back_populates="wallet")

    def __repr__(self) -> str:
        return (
            f"<Wallet(user_id={self.user_id}, balance={self.balance}, "
            f"profits={self.profits}, crypto_balance={self.crypto_balance})>"
        )


class LivePrice(Base):
    """
    Latest CoinMarketCap USD quote for one tracked asset

    One row per asset_id; refreshed in place by the price feed.
    """

    __tablename__ = "live_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_id: Mapped[int] = mapped_column(
        Integer, unique=True, index=True, nullable=False, comment="CoinMarketCap asset id"
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[str] = mapped_column(String(20), nullable=False, comment="Ticker, uppercase")
    slug: Mapped[str] = mapped_column(String(100), nullable=False, comment="CoinMarketCap slug, lowercase")

    # quote.USD
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    volume_24h: Mapped[Optional[Decimal]] = mapped_column(Numeric(32, 8), nullable=True)
    volume_change_24h: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8), nullable=True)
    percent_change_1h: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8), nullable=True)
    percent_change_24h: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8), nullable=True)
    last_updated: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Quote timestamp reported by CoinMarketCap"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, comment="Last refresh by the price feed"
    )

    def __repr__(self) -> str:
        return f"<LivePrice(asset_id={self.asset_id}, symbol={self.symbol}, price={self.price})>"


class JobMarker(Base):
    """
    Completion marker written by a scheduled job

    Used to order dependent jobs explicitly (wallet revaluation only
    consumes a price refresh it has not consumed before).
    """

    __tablename__ = "job_markers"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    marked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<JobMarker(name={self.name}, marked_at={self.marked_at})>"


class Plan(Base):
    """Investment plan offered to customers"""

    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    limit_min: Mapped[Decimal] = mapped_column(MONEY, nullable=False, comment="Minimum investable amount")
    limit_max: Mapped[Decimal] = mapped_column(MONEY, nullable=False, comment="Maximum investable amount")
    roi_percentage: Mapped[Decimal] = mapped_column(PERCENT, nullable=False)
    frequency: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, name={self.name}, duration_days={self.duration_days})>"


class Investment(Base):
    """
    Customer investment

    Carries a snapshot of its plan taken at creation time, so later plan
    edits never change a running investment.
    """

    __tablename__ = "investments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Plan snapshot
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    plan_limit_min: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    plan_limit_max: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    plan_roi_percentage: Mapped[Decimal] = mapped_column(PERCENT, nullable=False)
    plan_duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    plan_details: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # User reference (email is a display snapshot)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    frequency: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvestmentStatus.PENDING.value, nullable=False
    )
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_investments_status_expiry", "status", "expiry_date"),
    )

    def __repr__(self) -> str:
        return f"<Investment(id={self.id}, status={self.status}, expiry_date={self.expiry_date})>"


class LiveTrade(Base):
    """Simulated trade shown to a customer"""

    __tablename__ = "live_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, comment="cryptocurrency / forex / stock")
    currency_pair: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(10), nullable=False, comment="buy / sell")
    status: Mapped[str] = mapped_column(
        String(20), default=TradeStatus.ACTIVE.value, nullable=False
    )

    entry_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    stop_loss: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    take_profit: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    exit_price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    profit_loss: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    time: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    user_id: Mapped[int] = mapped_column(
        Integer, index=True, nullable=False, comment="Owning user (weak reference)"
    )
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(20, 3), nullable=True, comment="Seconds between created_at and closed_at"
    )

    def __repr__(self) -> str:
        return f"<LiveTrade(id={self.id}, pair={self.currency_pair}, status={self.status})>"


class AdminRefreshToken(Base):
    """Opaque admin refresh token (issued at login, deleted at logout or expiry)"""

    __tablename__ = "admin_refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: days_from_now(REFRESH_TOKEN_TTL_DAYS),
        index=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<AdminRefreshToken(id={self.id}, expiry_date={self.expiry_date})>"


class Topup(Base):
    """Admin credit applied to one wallet bucket"""

    __tablename__ = "topups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    affected_balance: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Topup(id={self.id}, user_id={self.user_id}, amount={self.amount}, affected={self.affected_balance})>"


class Deposit(Base):
    """
    Customer deposit

    updated_amount may exceed original_amount; the difference is booked
    as a bonus on confirmation.
    """

    __tablename__ = "deposits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    original_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    updated_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=LedgerStatus.PENDING.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Deposit(id={self.id}, user_id={self.user_id}, status={self.status})>"


class WithdrawalRequest(Base):
    """Customer withdrawal request"""

    __tablename__ = "withdrawal_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=LedgerStatus.PENDING.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<WithdrawalRequest(id={self.id}, user_id={self.user_id}, amount={self.amount})>"
