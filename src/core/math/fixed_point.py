"""
Fixed-Point — целочисленная арифметика ledger

Модуль вычисляет все денежные величины в int (wei) без float:
- комиссии в basis points
- котировки свопа по fixed-point цене (PRICE_SCALE)
- выпуск и погашение долей ликвидности

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Округление всегда вниз (в пользу пула / ledger)
2. fee + payout == total ровно (без потерь кроме усечения fee)
3. Деление на ноль никогда не происходит (ValueError на входе)
4. Все операции детерминированы и воспроизводимы
"""

from dataclasses import dataclass

from src.core.domain.units import BPS_DENOMINATOR, PRICE_SCALE


# =============================================================================
# БАЗОВЫЕ ОПЕРАЦИИ
# =============================================================================


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    floor(a * b / denominator) без промежуточного переполнения (Python int).

    Raises:
        ValueError: Если denominator <= 0 или операнды отрицательные
    """
    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")
    if a < 0 or b < 0:
        raise ValueError(f"operands must be non-negative, got {a}, {b}")
    return a * b // denominator


def bps_of(amount: int, bps: int) -> int:
    """Доля amount в basis points, округление вниз."""
    return mul_div(amount, bps, BPS_DENOMINATOR)


def split_fee(total: int, fee_bps: int) -> tuple[int, int]:
    """
    Разделение суммы на (payout, fee).

    fee = total * fee_bps // 10_000, payout = total - fee.
    Инвариант: payout + fee == total.
    """
    fee = bps_of(total, fee_bps)
    return total - fee, fee


# =============================================================================
# СВОП
# =============================================================================


@dataclass(frozen=True)
class SwapQuote:
    """Котировка свопа."""

    amount_in: int
    gross_out: int  # до комиссии
    fee: int  # в единицах token_out
    amount_out: int  # gross_out - fee
    volume_a: int  # нога свопа в единицах tokenA


def quote_swap(amount_in: int, price: int, fee_rate_bps: int, a_to_b: bool) -> SwapQuote:
    """
    Котировка свопа по фиксированной цене пары.

    price — количество tokenB за 1 tokenA * PRICE_SCALE.

    A → B: gross = amount_in * price // PRICE_SCALE
    B → A: gross = amount_in * PRICE_SCALE // price

    Args:
        amount_in: Входная сумма (наименьшие единицы token_in)
        price: Цена пары (fixed-point)
        fee_rate_bps: Комиссия пары
        a_to_b: Направление свопа

    Returns:
        SwapQuote; volume_a = amount_in для A→B и amount_out для B→A
    """
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")

    if a_to_b:
        gross = mul_div(amount_in, price, PRICE_SCALE)
    else:
        gross = mul_div(amount_in, PRICE_SCALE, price)

    amount_out, fee = split_fee(gross, fee_rate_bps)
    volume_a = amount_in if a_to_b else amount_out
    return SwapQuote(
        amount_in=amount_in,
        gross_out=gross,
        fee=fee,
        amount_out=amount_out,
        volume_a=volume_a,
    )


# =============================================================================
# ЛИКВИДНОСТЬ
# =============================================================================


def value_in_a(amount_a: int, amount_b: int, price: int) -> int:
    """Стоимость (amount_a, amount_b) в единицах tokenA по текущей цене."""
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")
    return amount_a + mul_div(amount_b, PRICE_SCALE, price)


def shares_for_deposit(
    amount_a: int,
    amount_b: int,
    price: int,
    reserve_a: int,
    reserve_b: int,
    total_shares: int,
) -> int:
    """
    Количество долей за депозит.

    Первый депозит (total_shares == 0 или пустой пул): shares = value.
    Далее: shares = value * total_shares // pool_value.

    Монотонна по value: больше стоимость → не меньше долей.
    """
    value = value_in_a(amount_a, amount_b, price)
    pool_value = value_in_a(reserve_a, reserve_b, price)
    if total_shares == 0 or pool_value == 0:
        return value
    return mul_div(value, total_shares, pool_value)


def amounts_for_shares(
    shares: int,
    reserve_a: int,
    reserve_b: int,
    total_shares: int,
) -> tuple[int, int]:
    """
    Погашение долей: пропорциональная часть резервов на момент погашения.

    Returns:
        (amount_a, amount_b), округление вниз
    """
    if total_shares <= 0:
        raise ValueError("pool has no shares outstanding")
    if shares > total_shares:
        raise ValueError(f"shares {shares} exceed total {total_shares}")
    return (
        mul_div(reserve_a, shares, total_shares),
        mul_div(reserve_b, shares, total_shares),
    )
