"""
Core module - base types and enums for the whole stack.
"""

from src.core.enums import (
    CryptoAsset,
    AffectedBalance,
)

__all__ = [
    "CryptoAsset",
    "AffectedBalance",
]
