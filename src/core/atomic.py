"""
AtomicLedger — база сериализованного ledger

Каждая мутирующая операция выполняется как одна транзакция:
- эксклюзивная блокировка ledger + блокировка AssetLedger
- снапшот записей, балансов и длины event log
- при любой ошибке — полный откат и повторный raise

Порядок захвата блокировок фиксирован (ledger → assets), поэтому
несколько ledger могут делить один AssetLedger без deadlock.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from src.core.clock import Clock, SystemClock
from src.core.domain.ciphertext import EncryptedInput
from src.core.domain.events import EventLog, EventType, LedgerEvent
from src.core.encryption import ProofVerifier
from src.core.errors import InvalidProof, Unauthorized
from src.core.transfers import AssetLedger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerReceipt:
    """Результат мутирующей операции: значение + опубликованные события."""

    operation: str
    value: Any
    events: tuple[LedgerEvent, ...]


class Transaction:
    """Хэндл открытой транзакции."""

    def __init__(self, ledger: "AtomicLedger", operation: str, start_seq: int):
        self._ledger = ledger
        self.operation = operation
        self.start_seq = start_seq
        self.now = ledger.clock.now()

    def emit(self, event_type: EventType, payload: Dict[str, Any]) -> LedgerEvent:
        return self._ledger.events.append(event_type, self.now, payload)

    def receipt(self, value: Any = None) -> LedgerReceipt:
        return LedgerReceipt(
            operation=self.operation,
            value=value,
            events=tuple(self._ledger.events.since(self.start_seq)),
        )


class AtomicLedger:
    """
    Базовый класс ledger с единственным администратором.

    Наследники реализуют _snapshot_state / _restore_state для своих таблиц.
    """

    name: str = "ledger"

    def __init__(
        self,
        owner: str,
        assets: AssetLedger,
        clock: Optional[Clock] = None,
        address: Optional[str] = None,
        event_validator: Optional[Callable[[Dict[str, Any]], None]] = None,
        proof_verifier: Optional[ProofVerifier] = None,
    ):
        if not owner:
            raise ValueError("owner principal is required")
        self.owner = owner
        self.assets = assets
        self.clock = clock or SystemClock()
        self.address = address or f"{self.name}-custody"
        self.events = EventLog(self.name, validator=event_validator)
        self._proof_verifier = proof_verifier
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Транзакции
    # -------------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Transaction]:
        with self._lock, self.assets.lock:
            state = self._snapshot_state()
            balances = self.assets.snapshot()
            events_len = len(self.events)
            tx = Transaction(self, operation, events_len)
            try:
                yield tx
            except Exception as e:
                self._restore_state(state)
                self.assets.restore(balances)
                self.events.truncate(events_len)
                logger.warning(f"[{self.name}] {operation} rolled back: {e}")
                raise

    def _snapshot_state(self) -> Any:
        raise NotImplementedError

    def _restore_state(self, state: Any) -> None:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Проверки
    # -------------------------------------------------------------------------

    def _require_owner(self, principal: str) -> None:
        if principal != self.owner:
            raise Unauthorized("Only owner can call this function")

    def _verify_proof(self, encrypted: EncryptedInput, principal: str) -> None:
        """Проверка proof, если подключён verifier (по умолчанию — хранение как есть)."""
        if self._proof_verifier is None:
            return
        if not self._proof_verifier(encrypted, principal):
            raise InvalidProof("Invalid encryption proof")

    def now(self) -> int:
        return self.clock.now()
