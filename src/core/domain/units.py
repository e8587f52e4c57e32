"""
Units — Централизованный модуль единиц учёта

Единственный допустимый способ преобразований между:
- whole units (ETH, TKA) и wei (наименьшая единица, 10^18)
- basis points и долями
- днями и секундами (deadline)

Все суммы в ledger — int в wei. Float в учёте ЗАПРЕЩЁН.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Final


# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Количество wei в одной целой единице актива (18 decimals)
WEI_PER_UNIT: Final[int] = 10**18

# Знаменатель basis points (10_000 bps = 100%)
BPS_DENOMINATOR: Final[int] = 10_000

# Масштаб fixed-point цены (price = tokenB за 1 tokenA * PRICE_SCALE)
PRICE_SCALE: Final[int] = 10**18

# Секунд в сутках для расчёта deadline
SECONDS_PER_DAY: Final[int] = 86_400

# Идентификатор нативного актива сети
NATIVE_ASSET: Final[str] = "ETH"


# =============================================================================
# БАЗОВЫЕ КОНВЕРТЕРЫ
# =============================================================================


def parse_units(value: str | int | Decimal, decimals: int = 18) -> int:
    """
    Конверсия: целые единицы → наименьшие единицы.

    parse_units("1.5") == 1_500_000_000_000_000_000

    Args:
        value: Сумма в целых единицах (строка, int или Decimal)
        decimals: Количество знаков актива

    Returns:
        Сумма в наименьших единицах (int)

    Raises:
        ValueError: Если значение не число или имеет больше знаков, чем decimals
    """
    if isinstance(value, float):
        raise ValueError("float amounts are not accepted, pass str or Decimal")
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {value} has more than {decimals} decimal places")
    return int(scaled)


def parse_ether(value: str | int | Decimal) -> int:
    """Конверсия ETH → wei."""
    return parse_units(value, 18)


def format_units(amount: int, decimals: int = 18) -> str:
    """
    Конверсия: наименьшие единицы → строка в целых единицах.

    format_units(1_950_000_000_000_000_000) == "1.95"
    """
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if frac == 0:
        return f"{sign}{whole}.0"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def format_ether(amount: int) -> str:
    """Конверсия wei → строка ETH."""
    return format_units(amount, 18)


def days_to_seconds(days: int) -> int:
    """Длительность в днях → секунды."""
    return days * SECONDS_PER_DAY


def bps_to_fraction(bps: int) -> Decimal:
    """
    Конверсия basis points в долю (только для отображения).

    Args:
        bps: Basis points (например, 250 bps = 2.5%)

    Returns:
        Decimal доля (250 → 0.025)
    """
    return Decimal(bps) / Decimal(BPS_DENOMINATOR)


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def validate_amount(amount: int, name: str = "amount") -> None:
    """
    Проверка, что сумма — неотрицательный int.

    Raises:
        ValueError: Если сумма не int (bool тоже отклоняется) или отрицательная
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{name} must be an integer number of base units, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} cannot be negative: {amount}")


def validate_bps(bps: int, name: str = "fee") -> None:
    """
    Проверка basis points: int в диапазоне [0, BPS_DENOMINATOR].

    Raises:
        ValueError: Если значение вне диапазона
    """
    validate_amount(bps, name)
    if bps > BPS_DENOMINATOR:
        raise ValueError(f"{name} {bps} bps exceeds 100%")
