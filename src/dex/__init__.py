"""
Confidential DEX order book.

Торговые пары, приватные ордера, свопы по цене пары и пул ликвидности.
"""

from src.dex.order_book import (
    ConfidentialOrderBook,
    DexConfig,
    FlagOnlySettlement,
    LiquidityWithdrawal,
    SettlementHook,
)

__all__ = [
    "ConfidentialOrderBook",
    "DexConfig",
    "SettlementHook",
    "FlagOnlySettlement",
    "LiquidityWithdrawal",
]
