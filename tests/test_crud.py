"""
Unit tests for CRUD operations
"""

import pytest
from decimal import Decimal

from src.core.enums import AffectedBalance, CryptoAsset
from src.database.crud import (
    AFFECTED_BALANCE_COLUMNS,
    CRYPTO_ASSET_COLUMNS,
    InsufficientBalanceError,
    LedgerStateError,
    LiveTradeValidationError,
    apply_topup,
    confirm_deposit,
    confirm_withdrawal,
    create_deposit,
    create_live_trade,
    create_plan,
    create_user,
    create_withdrawal_request,
    get_marker,
    get_user,
    get_user_by_email,
    get_wallet,
    set_marker,
)
from src.database.models import LedgerStatus, MarketType, TradeAction, TradeStatus
from src.utils.timeutils import utcnow


# ===========================
# USERS & WALLETS
# ===========================


@pytest.mark.asyncio
async def test_create_user_creates_zeroed_wallet(db_session):
    user = await create_user(db_session, full_name="Ada Lovelace", email="  Ada@Example.com ")

    assert user.email == "ada@example.com"
    assert (await get_user(db_session, user.id)).full_name == "Ada Lovelace"
    assert (await get_user_by_email(db_session, "ADA@example.com")).id == user.id

    wallet = await get_wallet(db_session, user.id)
    assert wallet is not None
    assert wallet.balance == Decimal("0")
    assert wallet.profits == Decimal("0")
    assert wallet.crypto_balance == Decimal("0")
    assert wallet.btc == Decimal("0")


@pytest.mark.asyncio
async def test_get_missing_user_and_wallet(db_session):
    assert await get_user(db_session, 999) is None
    assert await get_wallet(db_session, 999) is None


def test_every_affected_balance_maps_to_a_wallet_column():
    assert set(AFFECTED_BALANCE_COLUMNS) == set(AffectedBalance)
    assert set(CRYPTO_ASSET_COLUMNS) == set(CryptoAsset)


def test_crypto_asset_ids():
    assert CryptoAsset.BTC.cmc_id == 1
    assert CryptoAsset.from_cmc_id(5426) == CryptoAsset.SOLANA
    assert CryptoAsset.from_cmc_id(74) is None


# ===========================
# TOP-UPS
# ===========================


@pytest.mark.asyncio
async def test_topup_credits_bucket_and_topup_counter(db_session, make_user):
    user = await make_user(balance="10")

    topup = await apply_topup(
        db_session, user.id, Decimal("250"), "Welcome bonus", AffectedBalance.BALANCE
    )

    assert topup.affected_balance == "balance"
    assert topup.user_full_name == user.full_name
    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("260")
    assert wallet.topup == Decimal("250")


@pytest.mark.asyncio
async def test_topup_accepts_bucket_value_string(db_session, make_user):
    user = await make_user()

    await apply_topup(db_session, user.id, Decimal("40"), "Referral payout", "referral")

    wallet = await get_wallet(db_session, user.id)
    assert wallet.referral == Decimal("40")
    assert wallet.balance == Decimal("0")


@pytest.mark.asyncio
async def test_crypto_topup_adds_quantity_only(db_session, make_user):
    user = await make_user()

    await apply_topup(db_session, user.id, Decimal("0.5"), "BTC airdrop", AffectedBalance.CRYPTO_BTC)

    wallet = await get_wallet(db_session, user.id)
    assert wallet.btc == Decimal("0.5")
    assert wallet.topup == Decimal("0")


@pytest.mark.asyncio
async def test_topup_rejects_non_positive_amount(db_session, make_user):
    user = await make_user()

    with pytest.raises(ValueError):
        await apply_topup(db_session, user.id, Decimal("0"), "nothing", AffectedBalance.BALANCE)


@pytest.mark.asyncio
async def test_topup_for_missing_user_returns_none(db_session):
    assert await apply_topup(db_session, 404, Decimal("5"), "ghost", AffectedBalance.BALANCE) is None


# ===========================
# DEPOSITS & WITHDRAWALS
# ===========================


@pytest.mark.asyncio
async def test_confirm_deposit_books_bonus(db_session, make_user):
    user = await make_user(balance="100", profits="7", btc="1")
    deposit = await create_deposit(db_session, user.id, Decimal("1000"), Decimal("1100"))

    confirmed = await confirm_deposit(db_session, deposit.id)

    assert confirmed.status == LedgerStatus.COMPLETED.value
    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("1200")
    assert wallet.total_deposit == Decimal("1000")
    assert wallet.total_bonus == Decimal("100")
    # Other buckets are left alone
    assert wallet.profits == Decimal("7")
    assert wallet.btc == Decimal("1")


@pytest.mark.asyncio
async def test_deposit_is_confirmed_only_once(db_session, make_user):
    user = await make_user()
    deposit = await create_deposit(db_session, user.id, Decimal("50"))
    await confirm_deposit(db_session, deposit.id)

    with pytest.raises(LedgerStateError):
        await confirm_deposit(db_session, deposit.id)

    assert (await get_wallet(db_session, user.id)).balance == Decimal("50")


@pytest.mark.asyncio
async def test_confirm_missing_deposit_raises(db_session):
    with pytest.raises(ValueError):
        await confirm_deposit(db_session, 12345)


@pytest.mark.asyncio
async def test_confirm_withdrawal_debits_balance(db_session, make_user):
    user = await make_user(balance="500")
    request = await create_withdrawal_request(db_session, user.id, Decimal("200"))

    confirmed = await confirm_withdrawal(db_session, request.id)

    assert confirmed.status == LedgerStatus.COMPLETED.value
    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("300")
    assert wallet.withdrawn == Decimal("200")


@pytest.mark.asyncio
async def test_withdrawal_above_balance_is_rejected(db_session, make_user):
    user = await make_user(balance="100")
    request = await create_withdrawal_request(db_session, user.id, Decimal("100.01"))

    with pytest.raises(InsufficientBalanceError):
        await confirm_withdrawal(db_session, request.id)

    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("100")
    assert wallet.withdrawn == Decimal("0")


# ===========================
# PLANS & LIVE TRADES
# ===========================


@pytest.mark.asyncio
async def test_create_plan_validates_limits(db_session):
    with pytest.raises(ValueError):
        await create_plan(db_session, "Broken", Decimal("500"), Decimal("100"), Decimal("5"), 7, "x")
    with pytest.raises(ValueError):
        await create_plan(db_session, "Negative", Decimal("0"), Decimal("100"), Decimal("-1"), 7, "x")


@pytest.mark.asyncio
async def test_create_buy_trade(db_session, make_user):
    user = await make_user()

    trade = await create_live_trade(
        db_session, user, MarketType.STOCK, "aapl", TradeAction.BUY,
        Decimal("190"), Decimal("180"), Decimal("210"),
    )

    assert trade.status == TradeStatus.ACTIVE.value
    assert trade.currency_pair == "AAPL"
    assert trade.user_email == user.email
    assert trade.closed_at is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "action, stop_loss, take_profit",
    [
        (TradeAction.BUY, "195", "210"),   # stop above entry
        (TradeAction.BUY, "180", "185"),   # target below entry
        (TradeAction.SELL, "185", "170"),  # stop below entry
        (TradeAction.SELL, "200", "195"),  # target above entry
    ],
)
async def test_trade_levels_must_match_direction(db_session, make_user, action, stop_loss, take_profit):
    user = await make_user()

    with pytest.raises(LiveTradeValidationError):
        await create_live_trade(
            db_session, user, MarketType.FOREX, "EUR/USD", action,
            Decimal("190"), Decimal(stop_loss), Decimal(take_profit),
        )


# ===========================
# JOB MARKERS
# ===========================


@pytest.mark.asyncio
async def test_markers_roundtrip(db_session):
    assert await get_marker(db_session, "prices_refreshed") is None

    first = await set_marker(db_session, "prices_refreshed")
    assert await get_marker(db_session, "prices_refreshed") == first

    later = await set_marker(db_session, "prices_refreshed", utcnow())
    assert await get_marker(db_session, "prices_refreshed") == later
