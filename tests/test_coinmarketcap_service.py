"""
Unit tests for the CoinMarketCap quote client
"""
import asyncio
import pytest
from datetime import datetime, UTC
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from src.services.coinmarketcap_service import (
    AssetQuote,
    CoinMarketCapService,
    QuoteProviderError,
)


def _coin(asset_id, name, symbol, slug, price):
    return {
        "id": asset_id,
        "name": name,
        "symbol": symbol,
        "slug": slug,
        "quote": {
            "USD": {
                "price": price,
                "volume_24h": 1000.5,
                "volume_change_24h": -2.1,
                "percent_change_1h": 0.25,
                "percent_change_24h": 1.75,
                "last_updated": "2024-05-01T12:00:00.000Z",
            }
        },
    }


QUOTES_BODY = {
    "status": {"error_code": 0},
    "data": {
        "1": _coin(1, "Bitcoin", "BTC", "bitcoin", 67000.12),
        "1027": _coin(1027, "Ethereum", "ETH", "ethereum", 3100.5),
    },
}


def _mock_session(status=200, body=None, text=""):
    """aiohttp.ClientSession stand-in returning one response"""
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=body)
    mock_response.text = AsyncMock(return_value=text)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=False)

    mock_session = MagicMock()
    mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    return mock_session


@pytest.fixture
def service():
    return CoinMarketCapService(api_key="test-key", base_url="https://cmc.test")


@pytest.mark.asyncio
async def test_get_quotes_by_ids_success(service):
    mock_session = _mock_session(body=QUOTES_BODY)

    with patch("aiohttp.ClientSession", return_value=mock_session):
        quotes = await service.get_quotes_by_ids([1, 1027])

    url = mock_session.get.call_args.args[0]
    kwargs = mock_session.get.call_args.kwargs
    assert url == "https://cmc.test/v2/cryptocurrency/quotes/latest"
    assert kwargs["params"] == {"id": "1,1027"}
    assert kwargs["headers"]["X-CMC_PRO_API_KEY"] == "test-key"

    assert [quote.asset_id for quote in quotes] == [1, 1027]
    btc = quotes[0]
    assert btc.symbol == "BTC"
    assert btc.slug == "bitcoin"
    assert btc.price == Decimal("67000.12")
    assert btc.percent_change_24h == Decimal("1.75")
    assert btc.last_updated == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_default_ids_are_the_tracked_assets(service):
    mock_session = _mock_session(body={"data": {}})

    with patch("aiohttp.ClientSession", return_value=mock_session):
        quotes = await service.get_quotes_by_ids()

    assert quotes == []
    assert mock_session.get.call_args.kwargs["params"] == {"id": "1,1027,5426,825,52"}


@pytest.mark.asyncio
async def test_non_200_raises(service):
    mock_session = _mock_session(status=500, text="Internal error")

    with patch("aiohttp.ClientSession", return_value=mock_session):
        with pytest.raises(QuoteProviderError, match="500"):
            await service.get_quotes_by_ids([1])


@pytest.mark.asyncio
async def test_auth_failure_raises(service):
    mock_session = _mock_session(status=401)

    with patch("aiohttp.ClientSession", return_value=mock_session):
        with pytest.raises(QuoteProviderError, match="authentication"):
            await service.get_quotes_by_ids([1])


@pytest.mark.asyncio
async def test_transport_error_raises(service):
    mock_session = _mock_session()
    mock_session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("connection refused"))

    with patch("aiohttp.ClientSession", return_value=mock_session):
        with pytest.raises(QuoteProviderError, match="request failed"):
            await service.get_quotes_by_ids([1])


@pytest.mark.asyncio
async def test_timeout_raises(service):
    mock_session = _mock_session()
    mock_session.get = MagicMock(side_effect=asyncio.TimeoutError())

    with patch("aiohttp.ClientSession", return_value=mock_session):
        with pytest.raises(QuoteProviderError, match="timed out"):
            await service.get_quotes_by_ids([1])


@pytest.mark.asyncio
async def test_body_without_data_raises(service):
    mock_session = _mock_session(body={"status": {"error_code": 1002}})

    with patch("aiohttp.ClientSession", return_value=mock_session):
        with pytest.raises(QuoteProviderError, match="'data'"):
            await service.get_quotes_by_ids([1])


@pytest.mark.asyncio
async def test_missing_api_key_raises():
    with patch("src.services.coinmarketcap_service.COINMARKETCAP_API_KEY", ""):
        service = CoinMarketCapService(api_key="")

    with patch("aiohttp.ClientSession") as client_session:
        with pytest.raises(QuoteProviderError, match="not configured"):
            await service.get_quotes_by_ids([1])

    client_session.assert_not_called()


def test_quote_from_payload_rejects_missing_price():
    coin = _coin(52, "XRP", "xrp", "XRP", None)

    with pytest.raises(QuoteProviderError):
        AssetQuote.from_payload(coin)


def test_quote_from_payload_normalizes_symbol_and_slug():
    quote = AssetQuote.from_payload(_coin(52, "XRP", "xrp", "XRP", 0.52))

    assert quote.symbol == "XRP"
    assert quote.slug == "xrp"
    assert quote.price == Decimal("0.52")


@pytest.mark.asyncio
async def test_symbol_lookup_lists_are_flattened(service):
    body = {"data": {"BTC": [_coin(1, "Bitcoin", "BTC", "bitcoin", 1.0)]}}

    with patch("aiohttp.ClientSession", return_value=_mock_session(body=body)):
        quotes = await service.get_quotes_by_ids([1])

    assert [quote.asset_id for quote in quotes] == [1]


@pytest.mark.asyncio
async def test_empty_data_object_raises(service):
    mock_session = _mock_session(body={"status": {"error_code": 0}, "data": {}})

    with patch("aiohttp.ClientSession", return_value=mock_session):
        with pytest.raises(QuoteProviderError, match="no quotes"):
            await service.get_quotes_by_ids([1, 1027])
