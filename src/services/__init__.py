"""Settlement services and the CoinMarketCap integration"""
from .coinmarketcap_service import CoinMarketCapService, QuoteProviderError
from .trade_closer_service import TradeCloseResult, TradeCloseStatus, close_live_trade

__all__ = [
    'CoinMarketCapService',
    'QuoteProviderError',
    'TradeCloseResult',
    'TradeCloseStatus',
    'close_live_trade',
]
