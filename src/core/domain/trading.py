"""
Trading — Модели конфиденциального DEX

TradingPair: пара активов с ценой, комиссией и custody пулом
Order: приватный ордер (суммы только в виде ciphertext)
LiquidityPosition: доли провайдера ликвидности в пуле пары

Immutable Pydantic модели (frozen=True).
"""

import hashlib
from enum import IntEnum

from pydantic import BaseModel, Field, field_validator, model_validator

from .ciphertext import EncryptedInput
from .units import PRICE_SCALE


# =============================================================================
# PAIR ID
# =============================================================================


def pair_id_for(token_a: str, token_b: str) -> str:
    """
    Детерминированный идентификатор пары.

    Симметричен: pair_id_for(A, B) == pair_id_for(B, A).
    Формат: "0x" + 64 hex (sha256 от отсортированных идентификаторов).
    Каждый идентификатор кодируется с префиксом длины, поэтому разные
    пары не дают одинаковую строку перед хэшированием.
    """
    low, high = sorted((token_a, token_b))
    encoded = f"{len(low)}:{low}{len(high)}:{high}"
    digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
    return "0x" + digest


# =============================================================================
# ENUMS
# =============================================================================


class OrderType(IntEnum):
    """Тип ордера (числовые значения совпадают с on-chain enum)"""

    BUY = 0
    SELL = 1


# =============================================================================
# TRADING PAIR
# =============================================================================


class TradingPair(BaseModel):
    """
    Торговая пара.

    price — количество tokenB за 1 целый tokenA, fixed-point с PRICE_SCALE.
    reserve_a / reserve_b — custody пул пары (ликвидность провайдеров).
    """

    pair_id: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    token_a: str = Field(..., min_length=1)
    token_b: str = Field(..., min_length=1)

    fee_rate_bps: int = Field(..., ge=0, description="Комиссия свопа (bps)")
    is_active: bool = Field(default=True)
    price: int = Field(default=PRICE_SCALE, gt=0, description="tokenB за tokenA * PRICE_SCALE")

    total_volume_a: int = Field(default=0, ge=0, description="Кумулятивный объём в tokenA")

    # Custody пул
    reserve_a: int = Field(default=0, ge=0)
    reserve_b: int = Field(default=0, ge=0)
    total_shares: int = Field(default=0, ge=0)

    created_at: int = Field(..., ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_distinct_tokens(self) -> "TradingPair":
        if self.token_a == self.token_b:
            raise ValueError("Tokens must be different")
        if self.pair_id != pair_id_for(self.token_a, self.token_b):
            raise ValueError("pair_id does not match tokens")
        return self

    def has_token(self, token: str) -> bool:
        return token in (self.token_a, self.token_b)

    def is_a_to_b(self, token_in: str, token_out: str) -> bool:
        """True если направление tokenA → tokenB."""
        if (token_in, token_out) == (self.token_a, self.token_b):
            return True
        if (token_in, token_out) == (self.token_b, self.token_a):
            return False
        raise ValueError(f"Tokens {token_in}/{token_out} do not belong to pair {self.pair_id}")

    def reserve_of(self, token: str) -> int:
        if token == self.token_a:
            return self.reserve_a
        if token == self.token_b:
            return self.reserve_b
        raise ValueError(f"Token {token} does not belong to pair {self.pair_id}")


# =============================================================================
# ORDER
# =============================================================================


class Order(BaseModel):
    """
    Приватный ордер.

    Lifecycle: Created(is_active=True) → Executed(is_active=False), терминально.
    """

    order_id: int = Field(..., gt=0)
    trader: str = Field(..., min_length=1)
    pair_id: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    token_in: str = Field(..., min_length=1)
    token_out: str = Field(..., min_length=1)

    encrypted_amount_in: EncryptedInput
    encrypted_amount_out: EncryptedInput
    order_type: OrderType

    is_active: bool = Field(default=True)
    created_at: int = Field(..., ge=0)
    executed_at: int | None = Field(default=None, ge=0)
    executed_by: str | None = Field(default=None)

    model_config = {"frozen": True}

    @field_validator("token_out")
    @classmethod
    def validate_different_tokens(cls, v: str, info) -> str:
        if "token_in" in info.data and v == info.data["token_in"]:
            raise ValueError("token_in and token_out must be different")
        return v


# =============================================================================
# LIQUIDITY POSITION
# =============================================================================


class LiquidityPosition(BaseModel):
    """Доли провайдера в пуле пары."""

    provider: str = Field(..., min_length=1)
    pair_id: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    shares: int = Field(default=0, ge=0)

    model_config = {"frozen": True}
