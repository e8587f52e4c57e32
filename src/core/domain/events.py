"""
LedgerEvent / EventLog — append-only журнал событий ledger

Каждая успешная мутация добавляет одно или несколько событий с
публичными полями операции. Зашифрованные суммы попадают в журнал
только как hex ciphertext, plaintext сумм приватных ордеров — никогда.
"""

import json
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================


class EventType(str, Enum):
    """Типы событий (имена совпадают с on-chain events)"""

    # FundingLedger
    PROJECT_CREATED = "ProjectCreated"
    PRIVATE_CONTRIBUTION_MADE = "PrivateContributionMade"
    FUNDS_WITHDRAWN = "FundsWithdrawn"
    PLATFORM_FEE_UPDATED = "PlatformFeeUpdated"
    FEE_COLLECTOR_UPDATED = "FeeCollectorUpdated"
    PROJECT_PAUSED = "ProjectPaused"

    # ConfidentialOrderBook
    TRADING_PAIR_CREATED = "TradingPairCreated"
    PRIVATE_ORDER_CREATED = "PrivateOrderCreated"
    ORDER_EXECUTED = "OrderExecuted"
    TOKENS_SWAPPED = "TokensSwapped"
    LIQUIDITY_ADDED = "LiquidityAdded"
    LIQUIDITY_REMOVED = "LiquidityRemoved"
    DEFAULT_FEE_RATE_UPDATED = "DefaultFeeRateUpdated"
    PAIR_PRICE_UPDATED = "PairPriceUpdated"
    PAIR_STATUS_TOGGLED = "PairStatusToggled"


# =============================================================================
# EVENT MODEL
# =============================================================================


class LedgerEvent(BaseModel):
    """Событие ledger. Суммы в payload — строки (int без потери точности в JSON)."""

    seq: int = Field(..., gt=0, description="Порядковый номер в журнале (с 1)")
    ledger: str = Field(..., min_length=1, description="Имя ledger (vault / dex)")
    event_type: EventType
    timestamp: int = Field(..., ge=0)
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# EVENT LOG
# =============================================================================


class EventLog:
    """
    Append-only журнал.

    Откат (truncate) доступен только транзакционному слою ledger,
    для событий, добавленных незавершённой транзакцией.
    """

    def __init__(
        self,
        ledger: str,
        validator: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.ledger = ledger
        self._validator = validator
        self._events: List[LedgerEvent] = []
        self._lock = threading.RLock()

    def append(self, event_type: EventType, timestamp: int, payload: Dict[str, Any]) -> LedgerEvent:
        with self._lock:
            event = LedgerEvent(
                seq=len(self._events) + 1,
                ledger=self.ledger,
                event_type=event_type,
                timestamp=timestamp,
                payload=payload,
            )
            if self._validator is not None:
                self._validator(event.to_record())
            self._events.append(event)
            return event

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[LedgerEvent]:
        with self._lock:
            return iter(list(self._events))

    def __getitem__(self, index: int) -> LedgerEvent:
        with self._lock:
            return self._events[index]

    def since(self, seq: int) -> List[LedgerEvent]:
        """События с номером > seq."""
        with self._lock:
            return self._events[seq:]

    def of_type(self, event_type: EventType) -> List[LedgerEvent]:
        with self._lock:
            return [e for e in self._events if e.event_type == event_type]

    def truncate(self, length: int) -> None:
        with self._lock:
            del self._events[length:]

    def to_records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_record() for e in self._events]

    def to_jsonl(self) -> str:
        return "\n".join(json.dumps(record, sort_keys=True) for record in self.to_records())
