"""Clock — источник текущего времени для deadline проверок.

Время — Unix timestamp в секундах (int). Ledger никогда не читает
системные часы напрямую, только через Clock.
"""

import threading
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Системные часы (UTC, секунды)."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Управляемые часы для тестов и симуляций."""

    def __init__(self, start: int = 1_700_000_000):
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._now:
                raise ValueError(f"Clock cannot go backwards: {timestamp} < {self._now}")
            self._now = timestamp

    def advance(self, seconds: int) -> int:
        """Сдвиг времени вперёд; возвращает новое значение."""
        if seconds < 0:
            raise ValueError(f"Cannot advance by negative seconds: {seconds}")
        with self._lock:
            self._now += seconds
            return self._now
