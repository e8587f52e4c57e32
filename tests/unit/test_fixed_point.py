"""
Тесты fixed-point арифметики.

Coverage:
- mul_div / bps_of / split_fee (payout + fee == total)
- котировки свопа в обоих направлениях
- выпуск и погашение долей ликвидности
"""

import pytest

from src.core.domain.units import PRICE_SCALE, parse_ether
from src.core.math.fixed_point import (
    amounts_for_shares,
    bps_of,
    mul_div,
    quote_swap,
    shares_for_deposit,
    split_fee,
    value_in_a,
)


class TestBaseOperations:
    def test_mul_div_floors(self):
        assert mul_div(10, 3, 4) == 7

    def test_mul_div_large_operands(self):
        assert mul_div(10**40, 10**40, 10**60) == 10**20

    def test_mul_div_rejects_zero_denominator(self):
        with pytest.raises(ValueError, match="denominator"):
            mul_div(1, 1, 0)

    def test_mul_div_rejects_negative(self):
        with pytest.raises(ValueError, match="non-negative"):
            mul_div(-1, 1, 1)

    def test_bps_of(self):
        assert bps_of(10_000, 30) == 30
        assert bps_of(100, 30) == 0

    def test_split_fee_platform_default(self):
        payout, fee = split_fee(parse_ether("2"), 250)
        assert fee == parse_ether("0.05")
        assert payout == parse_ether("1.95")

    @pytest.mark.parametrize("total", [0, 1, 399, 10**18 + 7, 123_456_789])
    def test_split_fee_conserves_total(self, total):
        payout, fee = split_fee(total, 250)
        assert payout + fee == total
        assert fee == total * 250 // 10_000


class TestQuoteSwap:
    def test_a_to_b_at_par(self):
        quote = quote_swap(10_000, PRICE_SCALE, 30, a_to_b=True)
        assert quote.gross_out == 10_000
        assert quote.fee == 30
        assert quote.amount_out == 9_970
        assert quote.volume_a == 10_000

    def test_b_to_a_volume_is_output_leg(self):
        quote = quote_swap(9_970, PRICE_SCALE, 30, a_to_b=False)
        assert quote.fee == 29
        assert quote.amount_out == 9_941
        assert quote.volume_a == 9_941

    def test_price_applies_per_direction(self):
        price = 2 * PRICE_SCALE
        assert quote_swap(1_000, price, 30, a_to_b=True).amount_out == 1_994
        assert quote_swap(1_000, price, 30, a_to_b=False).amount_out == 499

    def test_zero_fee(self):
        quote = quote_swap(parse_ether("1"), PRICE_SCALE, 0, a_to_b=True)
        assert quote.fee == 0
        assert quote.amount_out == parse_ether("1")

    def test_rejects_non_positive_price(self):
        with pytest.raises(ValueError, match="price"):
            quote_swap(1, 0, 30, a_to_b=True)


class TestLiquidityShares:
    def test_value_in_a(self):
        assert value_in_a(100, 300, PRICE_SCALE) == 400
        assert value_in_a(100, 300, 3 * PRICE_SCALE) == 200

    def test_first_deposit_mints_value(self):
        assert shares_for_deposit(1_000_000, 1_000_000, PRICE_SCALE, 0, 0, 0) == 2_000_000

    def test_later_deposit_is_proportional(self):
        shares = shares_for_deposit(500_000, 500_000, PRICE_SCALE, 1_000_000, 1_000_000, 2_000_000)
        assert shares == 1_000_000

    def test_monotonic_in_value(self):
        small = shares_for_deposit(100, 0, PRICE_SCALE, 1_000, 1_000, 2_000)
        large = shares_for_deposit(200, 0, PRICE_SCALE, 1_000, 1_000, 2_000)
        assert large > small

    def test_redemption_pro_rata(self):
        assert amounts_for_shares(2_000_000, 1_500_000, 1_500_000, 3_000_000) == (1_000_000, 1_000_000)

    def test_full_redemption_empties_pool(self):
        assert amounts_for_shares(7, 1_001, 333, 7) == (1_001, 333)

    def test_redemption_rejects_excess(self):
        with pytest.raises(ValueError, match="exceed"):
            amounts_for_shares(11, 100, 100, 10)

    def test_redemption_rejects_empty_pool(self):
        with pytest.raises(ValueError, match="no shares"):
            amounts_for_shares(1, 0, 0, 0)
