"""
Core math modules

Целочисленные примитивы для учёта в wei: комиссии, котировки, доли ликвидности.
"""

from src.core.math.fixed_point import (
    SwapQuote,
    amounts_for_shares,
    bps_of,
    mul_div,
    quote_swap,
    shares_for_deposit,
    split_fee,
    value_in_a,
)

__all__ = [
    # Types
    "SwapQuote",
    # Base
    "mul_div",
    "bps_of",
    "split_fee",
    # Swap
    "quote_swap",
    # Liquidity
    "value_in_a",
    "shares_for_deposit",
    "amounts_for_shares",
]
