# coding: utf-8
"""
Wallet Valuation - reprices crypto holdings and books the change

For every wallet:
    new_crypto = sum(quantity * price) over the tracked assets
    delta      = new_crypto - crypto_balance
    balance   += delta
    fluctuation = delta / old balance * 100 (rounded half-up to 2 places),
                  or 0 / 100 when the old balance is zero

Missing prices count as zero. Without any stored price the run is a
no-op, so an empty price table never wipes the crypto valuations.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import CryptoAsset
from src.database.crud import CRYPTO_ASSET_COLUMNS, get_live_prices
from src.database.models import Wallet


ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_QUANTUM = Decimal("0.01")
# Scale of the wallet money columns
MONEY_QUANTUM = Decimal("0.00000001")


@dataclass(frozen=True)
class WalletRevaluation:
    """New valuation for one wallet"""

    crypto_balance: Decimal
    delta: Decimal
    balance: Decimal
    fluctuation: Decimal


@dataclass(frozen=True)
class RevaluationSummary:
    """Outcome of one revaluation run"""

    updated: int = 0
    failed: int = 0
    skipped: bool = False

    @property
    def success(self) -> bool:
        return not self.skipped and self.failed == 0


def compute_fluctuation(balance: Decimal, delta: Decimal) -> Decimal:
    """
    Percentage change of the balance caused by `delta`

    A zero balance has no meaningful ratio: 0 if nothing changed, else 100.
    """
    if balance == ZERO:
        return ZERO if delta == ZERO else HUNDRED
    return (delta / balance * HUNDRED).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def compute_wallet_revaluation(
    holdings: Mapping[CryptoAsset, Decimal],
    prices: Mapping[CryptoAsset, Decimal],
    crypto_balance: Decimal,
    balance: Decimal,
) -> WalletRevaluation:
    """
    Revalue one wallet against the given prices

    Args:
        holdings: Quantity per asset (missing = 0)
        prices: USD price per asset (missing = 0)
        crypto_balance: Previous fiat valuation of the holdings
        balance: Current spendable balance

    Returns:
        WalletRevaluation with the new crypto valuation, delta, balance
        and fluctuation
    """
    crypto_balance = crypto_balance or ZERO
    balance = balance or ZERO

    new_crypto = sum(
        (
            (holdings.get(asset) or ZERO) * (prices.get(asset) or ZERO)
            for asset in CryptoAsset
        ),
        ZERO,
    ).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)

    delta = new_crypto - crypto_balance

    return WalletRevaluation(
        crypto_balance=new_crypto,
        delta=delta,
        balance=balance + delta,
        fluctuation=compute_fluctuation(balance, delta),
    )


async def load_price_map(session: AsyncSession) -> Dict[CryptoAsset, Decimal]:
    """
    Current USD price per tracked asset

    Returns:
        Mapping with every CryptoAsset (0 where no row exists), or an
        empty dict when the price table is empty
    """
    rows = await get_live_prices(session)
    if not rows:
        return {}

    prices: Dict[CryptoAsset, Decimal] = {asset: ZERO for asset in CryptoAsset}
    for row in rows:
        asset = CryptoAsset.from_cmc_id(row.asset_id)
        if asset is not None:
            prices[asset] = row.price or ZERO
    return prices


async def revalue_wallet(
    session: AsyncSession, user_id: int, prices: Mapping[CryptoAsset, Decimal]
) -> WalletRevaluation | None:
    """
    Revalue and persist one wallet (commits)

    Only crypto_balance, balance and fluctuation are written; balance is
    moved by `delta` in SQL so concurrent ledger credits are preserved.

    Returns:
        The applied revaluation, or None if the wallet does not exist
    """
    columns = [Wallet.crypto_balance, Wallet.balance, *CRYPTO_ASSET_COLUMNS.values()]
    result = await session.execute(select(*columns).where(Wallet.user_id == user_id))
    row = result.one_or_none()
    if row is None:
        return None

    values = row._mapping
    holdings = {
        asset: values[column.key] for asset, column in CRYPTO_ASSET_COLUMNS.items()
    }
    revaluation = compute_wallet_revaluation(
        holdings,
        prices,
        crypto_balance=values[Wallet.crypto_balance.key],
        balance=values[Wallet.balance.key],
    )

    await session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(
            crypto_balance=revaluation.crypto_balance,
            balance=Wallet.balance + revaluation.delta,
            fluctuation=revaluation.fluctuation,
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return revaluation


async def revalue_wallets(session: AsyncSession) -> RevaluationSummary:
    """
    Revalue every wallet against the stored live prices

    A failure on one wallet is logged and counted; the other wallets are
    still processed and keep their committed updates.

    Args:
        session: Database session

    Returns:
        RevaluationSummary (skipped=True when no prices are stored)
    """
    prices = await load_price_map(session)
    if not prices:
        logger.warning("No live prices stored - wallet revaluation skipped")
        return RevaluationSummary(skipped=True)

    result = await session.execute(select(Wallet.user_id).order_by(Wallet.user_id))
    user_ids = list(result.scalars().all())

    updated = 0
    failed = 0
    for user_id in user_ids:
        try:
            if await revalue_wallet(session, user_id, prices) is not None:
                updated += 1
        except Exception as e:
            await session.rollback()
            failed += 1
            logger.error(f"Wallet revaluation failed for user {user_id}: {e}")

    if failed:
        logger.warning(f"Revalued {updated} wallets, {failed} failed")
    else:
        logger.info(f"Revalued {updated} wallets")

    return RevaluationSummary(updated=updated, failed=failed)
