"""
Tests for the settlement scheduler and its jobs
"""
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from src.database.crud import (
    MARKER_PRICES_REFRESHED,
    MARKER_WALLETS_REVALUED,
    get_marker,
    get_wallet,
)
from src.database.models import LivePrice
from src.services.coinmarketcap_service import AssetQuote, QuoteProviderError
from src.tasks.scheduler import ScheduledJob, SettlementScheduler, default_jobs
from src.tasks.wallet_revaluation import run_wallet_revaluation


EXPECTED_JOBS = {
    "price_refresh": "0 * * * *",
    "wallet_revaluation": "10 * * * *",
    "investment_expiry": "0 * * * *",
    "token_cleanup": "0 * * * *",
    "profit_settlement": "0 0 * * *",
}


def _quote_service(price: str = "600"):
    service = MagicMock()
    service.get_quotes_by_ids = AsyncMock(
        return_value=[
            AssetQuote(asset_id=1, name="Bitcoin", symbol="BTC", slug="bitcoin", price=Decimal(price))
        ]
    )
    return service


def test_default_job_table():
    jobs = default_jobs()

    assert {job.id: job.cron for job in jobs} == EXPECTED_JOBS
    assert all(callable(job.handler) for job in jobs)


@pytest.mark.asyncio
async def test_start_registers_cron_jobs_in_timezone(session_maker):
    scheduler = SettlementScheduler(session_maker=session_maker)

    scheduler.start()
    try:
        assert scheduler.running
        jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}
        assert set(jobs) == set(EXPECTED_JOBS)

        revaluation = jobs["wallet_revaluation"]
        assert str(revaluation.trigger.timezone) == "America/New_York"
        assert revaluation.next_run_time.minute == 10
        assert revaluation.max_instances == 1
        assert jobs["profit_settlement"].next_run_time.hour == 0
    finally:
        scheduler.stop()

    assert not scheduler.running
    assert scheduler.scheduler is None


@pytest.mark.asyncio
async def test_start_twice_is_ignored(session_maker):
    scheduler = SettlementScheduler(session_maker=session_maker)

    scheduler.start()
    first = scheduler.scheduler
    scheduler.start()
    try:
        assert scheduler.scheduler is first
    finally:
        scheduler.stop()


@pytest.mark.asyncio
async def test_custom_jobs_and_trigger_now():
    handler = AsyncMock(return_value={"success": True})
    scheduler = SettlementScheduler(jobs=[ScheduledJob("ping", "Ping", "*/5 * * * *", handler)])

    assert await scheduler.trigger_now("ping") == {"success": True}
    handler.assert_awaited_once()

    with pytest.raises(KeyError):
        await scheduler.trigger_now("missing")


@pytest.mark.asyncio
async def test_revaluation_waits_for_a_price_refresh(session_maker, make_user):
    user = await make_user(balance="5000", crypto_balance="1000", btc="2")
    scheduler = SettlementScheduler(jobs=default_jobs(session_maker, _quote_service()))

    skipped = await scheduler.trigger_wallet_revaluation_now()
    assert skipped["skipped"] is True
    assert skipped["reason"] == "no_price_refresh"

    refreshed = await scheduler.trigger_price_refresh_now()
    assert refreshed["success"] is True
    assert refreshed["upserted"] == 1

    revalued = await scheduler.trigger_wallet_revaluation_now()
    assert revalued == {"success": True, "skipped": False, "updated": 1, "failed": 0}

    async with session_maker() as session:
        wallet = await get_wallet(session, user.id)
        assert wallet.balance == Decimal("5200")
        assert wallet.fluctuation == Decimal("4.00")
        assert await get_marker(session, MARKER_WALLETS_REVALUED) == await get_marker(
            session, MARKER_PRICES_REFRESHED
        )


@pytest.mark.asyncio
async def test_revaluation_runs_once_per_price_refresh(session_maker, make_user):
    user = await make_user(balance="5000", crypto_balance="1000", btc="2")
    scheduler = SettlementScheduler(jobs=default_jobs(session_maker, _quote_service()))

    await scheduler.trigger_price_refresh_now()
    await scheduler.trigger_wallet_revaluation_now()
    second = await scheduler.trigger_wallet_revaluation_now()

    assert second["skipped"] is True
    assert second["reason"] == "prices_not_refreshed"
    async with session_maker() as session:
        # The fluctuation of the first run is kept
        assert (await get_wallet(session, user.id)).fluctuation == Decimal("4.00")


@pytest.mark.asyncio
async def test_forced_revaluation_ignores_markers(session_maker, make_user):
    await make_user(balance="100", btc="1")
    async with session_maker() as session:
        session.add(LivePrice(asset_id=1, name="Bitcoin", symbol="BTC", slug="bitcoin", price=Decimal("10")))
        await session.commit()

    scheduler = SettlementScheduler(session_maker=session_maker)
    result = await scheduler.trigger_wallet_revaluation_now(force=True)

    assert result["updated"] == 1
    async with session_maker() as session:
        assert await get_marker(session, MARKER_WALLETS_REVALUED) is None


@pytest.mark.asyncio
async def test_failed_price_refresh_is_reported_not_raised(session_maker):
    service = MagicMock()
    service.get_quotes_by_ids = AsyncMock(side_effect=QuoteProviderError("HTTP 503"))
    scheduler = SettlementScheduler(jobs=default_jobs(session_maker, service))

    result = await scheduler.trigger_price_refresh_now()

    assert result == {"success": False, "error": "HTTP 503"}
    async with session_maker() as session:
        assert await get_marker(session, MARKER_PRICES_REFRESHED) is None


@pytest.mark.asyncio
async def test_job_errors_are_caught(session_maker):
    with patch(
        "src.tasks.wallet_revaluation.revalue_wallets",
        AsyncMock(side_effect=RuntimeError("boom")),
    ):
        result = await run_wallet_revaluation(session_maker, force=True)

    assert result == {"success": False, "error": "boom"}


@pytest.mark.asyncio
async def test_settlement_jobs_run_through_scheduler(session_maker, make_user):
    user = await make_user(balance="100", profits="25")
    scheduler = SettlementScheduler(session_maker=session_maker)

    assert await scheduler.trigger_profit_settlement_now() == {"success": True, "settled": 1}
    assert await scheduler.trigger_investment_expiry_now() == {"success": True, "expired": 0}
    assert await scheduler.trigger_token_cleanup_now() == {"success": True, "deleted": 0}

    async with session_maker() as session:
        assert (await get_wallet(session, user.id)).balance == Decimal("125")
