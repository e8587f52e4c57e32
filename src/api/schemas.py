"""
API DTOs (pydantic).

Суммы — int в наименьших единицах актива (wei). Зашифрованные поля
принимаются как "0x" hex (EncryptedInput) и так же возвращаются.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.core.domain.ciphertext import EncryptedInput
from src.core.domain.project import Project, ProjectStatus
from src.core.domain.trading import OrderType


# ============================================
# COMMON
# ============================================


class ErrorResponse(BaseModel):
    error: str
    detail: str


class MutationResponse(BaseModel):
    """Ответ мутирующей операции: значение + опубликованные события."""

    operation: str
    value: Any = None
    events: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "operation": "createProject",
                "value": 1,
                "events": [
                    {
                        "seq": 1,
                        "ledger": "vault",
                        "event_type": "ProjectCreated",
                        "timestamp": 1700000000,
                        "payload": {"project_id": 1, "creator": "alice"},
                    }
                ],
            }
        }
    }


class HealthResponse(BaseModel):
    status: str
    version: str
    project_count: int
    pair_count: int
    order_count: int
    vault_events: int
    dex_events: int


# ============================================
# ASSETS
# ============================================


class MintRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    account: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class BalanceResponse(BaseModel):
    asset: str
    account: str
    balance: int


# ============================================
# VAULT
# ============================================


class ProjectCreateRequest(BaseModel):
    title: str
    description: str = ""
    category: str = ""
    funding_goal: int
    duration_days: int

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Open hardware wallet",
                "description": "Audited firmware",
                "category": "Technology",
                "funding_goal": 2 * 10**18,
                "duration_days": 30,
            }
        }
    }


class ContributionRequest(BaseModel):
    """Взнос: value переводится, encrypted_amount хранится как audit metadata.

    Без encrypted_amount сервер шифрует value своим провайдером. Mock
    провайдер работает в диапазоне euint64 (до 2**64 - 1 wei, ~18.44 ETH);
    для большего value ciphertext передаётся клиентом.
    """

    value: int
    encrypted_amount: Optional[EncryptedInput] = Field(
        default=None,
        description="Client ciphertext; required when value exceeds 2**64 - 1",
    )


class PlatformFeeRequest(BaseModel):
    fee_bps: int


class FeeCollectorRequest(BaseModel):
    fee_collector: str = Field(..., min_length=1)


class ProjectResponse(BaseModel):
    project: Project
    status: ProjectStatus
    status_name: str


class ProjectStatusResponse(BaseModel):
    project_id: int
    status: ProjectStatus
    status_name: str


# ============================================
# DEX
# ============================================


class PairCreateRequest(BaseModel):
    token_a: str
    token_b: str
    fee_rate_bps: Optional[int] = None


class PairPriceRequest(BaseModel):
    price: int


class DefaultFeeRateRequest(BaseModel):
    fee_rate_bps: int


class OrderCreateRequest(BaseModel):
    token_in: str
    token_out: str
    encrypted_amount_in: EncryptedInput
    encrypted_amount_out: EncryptedInput
    order_type: OrderType


class SwapRequest(BaseModel):
    token_in: str
    token_out: str
    amount_in: int
    min_amount_out: int = 0


class AddLiquidityRequest(BaseModel):
    """Суммы без ciphertext шифруются сервером (диапазон euint64)."""

    token_a: str
    token_b: str
    amount_a: int
    amount_b: int
    encrypted_amount_a: Optional[EncryptedInput] = None
    encrypted_amount_b: Optional[EncryptedInput] = None


class RemoveLiquidityRequest(BaseModel):
    token_a: str
    token_b: str
    shares: int


class UserOrdersResponse(BaseModel):
    trader: str
    order_ids: List[int]
