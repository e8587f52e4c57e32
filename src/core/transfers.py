"""
AssetLedger — слой переводов активов

Хранит балансы (asset, account) → int и выполняет переводы атомарно
по одному вызову. Ledger компоненты используют его как custody:
средства принимаются на адрес ledger и выплачиваются с него.

Блокировка:
- `lock` — RLock, который ledger удерживает на время всей транзакции
- `snapshot()` / `restore()` — откат балансов при ошибке транзакции
"""

import logging
import threading
from typing import Dict, Tuple

from src.core.errors import InvalidAmount, TransferFailed


logger = logging.getLogger(__name__)

BalanceKey = Tuple[str, str]


class AssetLedger:
    """In-memory балансы активов по principal."""

    def __init__(self):
        self._balances: Dict[BalanceKey, int] = {}
        self.lock = threading.RLock()

    def balance_of(self, asset: str, account: str) -> int:
        with self.lock:
            return self._balances.get((asset, account), 0)

    def total_supply(self, asset: str) -> int:
        with self.lock:
            return sum(v for (a, _), v in self._balances.items() if a == asset)

    def mint(self, asset: str, account: str, amount: int) -> None:
        """Начисление актива (faucet / депозит извне)."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"Mint amount must be a positive integer, got {amount!r}")
        with self.lock:
            key = (asset, account)
            self._balances[key] = self._balances.get(key, 0) + amount
        logger.debug(f"Minted {amount} {asset} to {account}")

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """
        Перевод amount актива от sender к recipient.

        Нулевой перевод — no-op (выплата пустого проекта).

        Raises:
            InvalidAmount: amount отрицательный или не int
            TransferFailed: у sender недостаточно средств
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmount(f"Transfer amount must be a non-negative integer, got {amount!r}")
        if amount == 0:
            return

        with self.lock:
            sender_key = (asset, sender)
            available = self._balances.get(sender_key, 0)
            if available < amount:
                raise TransferFailed(
                    f"Insufficient {asset} balance for {sender}: {available} < {amount}"
                )
            self._balances[sender_key] = available - amount
            recipient_key = (asset, recipient)
            self._balances[recipient_key] = self._balances.get(recipient_key, 0) + amount

    def snapshot(self) -> Dict[BalanceKey, int]:
        with self.lock:
            return dict(self._balances)

    def restore(self, snapshot: Dict[BalanceKey, int]) -> None:
        with self.lock:
            self._balances = dict(snapshot)

    def export_balances(self) -> list[dict]:
        with self.lock:
            return [
                {"asset": asset, "account": account, "balance": str(balance)}
                for (asset, account), balance in sorted(self._balances.items())
                if balance
            ]
