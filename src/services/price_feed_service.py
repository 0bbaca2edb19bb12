# coding: utf-8
"""
Price Feed - stores the latest CoinMarketCap quotes as LivePrice rows

One row per asset_id, refreshed in place (INSERT ... ON CONFLICT DO UPDATE).
"""
from typing import List, Optional

from loguru import logger
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import set_marker, MARKER_PRICES_REFRESHED
from src.database.models import LivePrice
from src.services.coinmarketcap_service import AssetQuote, CoinMarketCapService, QuoteProviderError
from src.utils.timeutils import utcnow


# Columns overwritten on every refresh
_REFRESHED_COLUMNS = (
    "name",
    "symbol",
    "slug",
    "price",
    "volume_24h",
    "volume_change_24h",
    "percent_change_1h",
    "percent_change_24h",
    "last_updated",
    "updated_at",
)


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT construct supporting ON CONFLICT"""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


async def upsert_live_prices(session: AsyncSession, quotes: List[AssetQuote]) -> int:
    """
    Insert or refresh one LivePrice row per quote

    Args:
        session: Database session
        quotes: Parsed quotes

    Returns:
        Number of upserted assets
    """
    if not quotes:
        return 0

    now = utcnow()
    rows = [
        {
            "asset_id": quote.asset_id,
            "name": quote.name,
            "symbol": quote.symbol,
            "slug": quote.slug,
            "price": quote.price,
            "volume_24h": quote.volume_24h,
            "volume_change_24h": quote.volume_change_24h,
            "percent_change_1h": quote.percent_change_1h,
            "percent_change_24h": quote.percent_change_24h,
            "last_updated": quote.last_updated,
            "created_at": now,
            "updated_at": now,
        }
        for quote in quotes
    ]

    insert = _insert_for(session)
    stmt = insert(LivePrice).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["asset_id"],
        set_={column: getattr(stmt.excluded, column) for column in _REFRESHED_COLUMNS},
    )
    await session.execute(stmt)
    await session.commit()

    return len(rows)


async def refresh_live_prices(
    session: AsyncSession, service: Optional[CoinMarketCapService] = None
) -> int:
    """
    Fetch the tracked quotes and store them

    On success the "prices_refreshed" marker is set, which releases the
    next wallet revaluation.

    Args:
        session: Database session
        service: Quote provider (default CoinMarketCapService())

    Returns:
        Number of upserted assets

    Raises:
        QuoteProviderError: If the quotes could not be fetched or none came back;
            nothing is written
    """
    service = service or CoinMarketCapService()

    quotes = await service.get_quotes_by_ids()
    if not quotes:
        # An empty refresh must not release the revaluation
        raise QuoteProviderError("Quote provider returned no prices")

    count = await upsert_live_prices(session, quotes)
    await set_marker(session, MARKER_PRICES_REFRESHED)

    logger.info(
        f"Live prices updated: {count} assets "
        f"({', '.join(quote.symbol for quote in quotes)})"
    )
    return count
