"""
Settlement Scheduler

APScheduler jobs for the settlement worker (cron, SCHEDULER_TIMEZONE):
- Price refresh: hourly at :00
- Wallet revaluation: hourly at :10 (after the price refresh)
- Investment expiry: hourly
- Token cleanup: hourly
- Profit settlement: daily at midnight
"""
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.config import (
    SCHEDULER_TIMEZONE,
    CRON_PRICE_REFRESH,
    CRON_WALLET_REVALUATION,
    CRON_INVESTMENT_EXPIRY,
    CRON_TOKEN_CLEANUP,
    CRON_PROFIT_SETTLEMENT,
)
from src.services.coinmarketcap_service import CoinMarketCapService
from src.tasks.investment_expiry import run_investment_expiry
from src.tasks.price_refresh import run_price_refresh
from src.tasks.profit_settlement import run_profit_settlement
from src.tasks.token_cleanup import run_token_cleanup
from src.tasks.wallet_revaluation import run_wallet_revaluation


JobHandler = Callable[[], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ScheduledJob:
    id: str
    name: str
    cron: str
    handler: JobHandler


def default_jobs(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    quote_service: Optional[CoinMarketCapService] = None,
) -> List[ScheduledJob]:
    """
    The worker's job table

    Args:
        session_maker: Session factory passed to every job (default: the worker's)
        quote_service: Quote provider for the price refresh
    """
    return [
        ScheduledJob(
            id="price_refresh",
            name="Refresh live crypto prices",
            cron=CRON_PRICE_REFRESH,
            handler=partial(run_price_refresh, session_maker, quote_service),
        ),
        ScheduledJob(
            id="wallet_revaluation",
            name="Revalue wallets with live prices",
            cron=CRON_WALLET_REVALUATION,
            handler=partial(run_wallet_revaluation, session_maker),
        ),
        ScheduledJob(
            id="investment_expiry",
            name="Expire matured investments",
            cron=CRON_INVESTMENT_EXPIRY,
            handler=partial(run_investment_expiry, session_maker),
        ),
        ScheduledJob(
            id="token_cleanup",
            name="Delete expired admin refresh tokens",
            cron=CRON_TOKEN_CLEANUP,
            handler=partial(run_token_cleanup, session_maker),
        ),
        ScheduledJob(
            id="profit_settlement",
            name="Settle daily earned profits",
            cron=CRON_PROFIT_SETTLEMENT,
            handler=partial(run_profit_settlement, session_maker),
        ),
    ]


class SettlementScheduler:
    """
    Owns the AsyncIOScheduler running the settlement jobs.

    Every job can also be run by hand through trigger_*_now(), which
    calls the same handler the scheduler would.
    """

    def __init__(
        self,
        jobs: Optional[List[ScheduledJob]] = None,
        timezone: str = SCHEDULER_TIMEZONE,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.jobs: Dict[str, ScheduledJob] = {
            job.id: job for job in (jobs if jobs is not None else default_jobs(session_maker))
        }
        self.timezone = timezone
        self.session_maker = session_maker
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler (needs a running event loop)."""
        if self._running:
            logger.warning("Settlement scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

        for job in self.jobs.values():
            self.scheduler.add_job(
                partial(self._run_job, job),
                CronTrigger.from_crontab(job.cron, timezone=self.timezone),
                id=job.id,
                name=job.name,
                replace_existing=True,
                max_instances=1,  # Prevent overlapping runs
                coalesce=True,
            )

        self.scheduler.start()
        self._running = True

        schedule = ", ".join(f"{job.id} '{job.cron}'" for job in self.jobs.values())
        logger.info(f"Settlement scheduler started ({self.timezone}): {schedule}")

    async def _run_job(self, job: ScheduledJob) -> Dict[str, Any]:
        with logger.contextualize(job=job.id):
            return await job.handler()

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            self._running = False
            logger.info("Settlement scheduler stopped")

    async def trigger_now(self, job_id: str) -> Dict[str, Any]:
        """Run one job immediately."""
        if job_id not in self.jobs:
            raise KeyError(f"Unknown job: {job_id}")
        logger.info(f"Manual {job_id} triggered")
        return await self._run_job(self.jobs[job_id])

    async def trigger_price_refresh_now(self) -> Dict[str, Any]:
        return await self.trigger_now("price_refresh")

    async def trigger_wallet_revaluation_now(self, force: bool = False) -> Dict[str, Any]:
        """Manual revaluation; force=True ignores the price-refresh marker."""
        if not force:
            return await self.trigger_now("wallet_revaluation")
        logger.info("Manual wallet_revaluation triggered (forced)")
        with logger.contextualize(job="wallet_revaluation"):
            return await run_wallet_revaluation(self.session_maker, force=True)

    async def trigger_investment_expiry_now(self) -> Dict[str, Any]:
        return await self.trigger_now("investment_expiry")

    async def trigger_token_cleanup_now(self) -> Dict[str, Any]:
        return await self.trigger_now("token_cleanup")

    async def trigger_profit_settlement_now(self) -> Dict[str, Any]:
        return await self.trigger_now("profit_settlement")
