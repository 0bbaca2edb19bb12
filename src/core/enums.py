"""
Core Enums - shared wallet types for the whole stack.

Defines:
- CryptoAsset: tracked crypto holdings and their CoinMarketCap ids
- AffectedBalance: wallet buckets an admin top-up may credit
"""

from enum import Enum

from config.config import TRACKED_ASSET_IDS


class CryptoAsset(str, Enum):
    """Crypto holdings kept on every wallet.

    The value is the wallet holding key; the CoinMarketCap id used to
    price it comes from configuration.
    """

    BTC = "btc"
    ETH = "eth"
    SOLANA = "solana"
    TETHER = "tether"
    XRP = "xrp"

    @property
    def cmc_id(self) -> int:
        """CoinMarketCap asset id for this holding."""
        return TRACKED_ASSET_IDS[self.value]

    @classmethod
    def from_cmc_id(cls, asset_id: int) -> "CryptoAsset | None":
        """Resolve a CoinMarketCap id back to a holding (None if untracked)."""
        for asset in cls:
            if asset.cmc_id == asset_id:
                return asset
        return None


class AffectedBalance(str, Enum):
    """Wallet bucket credited by an admin top-up.

    Each member maps to exactly one wallet column in
    src.database.crud.AFFECTED_BALANCE_COLUMNS.
    """

    BALANCE = "balance"
    TOTAL_DEPOSIT = "total_deposit"
    TOTAL_BONUS = "total_bonus"
    PROFITS = "profits"
    WITHDRAWN = "withdrawn"
    REFERRAL = "referral"
    CRYPTO_BTC = "crypto_btc"
    CRYPTO_ETH = "crypto_eth"
    CRYPTO_SOLANA = "crypto_solana"
    CRYPTO_TETHER = "crypto_tether"
    CRYPTO_XRP = "crypto_xrp"

    @property
    def is_crypto(self) -> bool:
        """Top-ups to crypto buckets are quantities, not fiat."""
        return self.value.startswith("crypto_")
