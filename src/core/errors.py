"""
Ledger errors — типизированная таксономия отказов.

Каждая ошибка несёт стабильный `kind` (для API и тестов) и `reason`
(человекочитаемая причина). Любая ошибка внутри транзакции ledger
откатывает все изменения: записи, балансы активов и event log.
"""


class LedgerError(Exception):
    """Базовая ошибка ledger операций."""

    kind: str = "LedgerError"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.kind}: {self.reason}"


# =============================================================================
# INVALID INPUT
# =============================================================================


class InvalidInput(LedgerError):
    """Некорректные или вне диапазона аргументы."""

    kind = "InvalidInput"


class InvalidAmount(InvalidInput):
    """Неположительная или не целая сумма."""

    kind = "InvalidAmount"


class FeeTooHigh(InvalidInput):
    """Комиссия выше допустимого потолка."""

    kind = "FeeTooHigh"


class SameToken(InvalidInput):
    """Торговая пара из одного и того же актива."""

    kind = "SameToken"


class InvalidProof(InvalidInput):
    """Proof не прошёл проверку провайдера шифрования."""

    kind = "InvalidProof"


# =============================================================================
# LOOKUP / AUTH
# =============================================================================


class NotFound(LedgerError):
    kind = "NotFound"


class Unauthorized(LedgerError):
    """У вызывающего нет требуемой роли (creator / administrator)."""

    kind = "Unauthorized"


class AlreadyExists(LedgerError):
    kind = "AlreadyExists"


# =============================================================================
# STATE
# =============================================================================


class NotActive(LedgerError):
    """Операция над записью в неактивном или терминальном состоянии."""

    kind = "NotActive"


class ProjectInactive(NotActive):
    kind = "ProjectInactive"


class ProjectExpired(NotActive):
    kind = "ProjectExpired"


class PairInactive(NotActive):
    kind = "PairInactive"


class AlreadyExecuted(NotActive):
    kind = "AlreadyExecuted"


class NotWithdrawable(LedgerError):
    """Цель не достигнута и deadline не прошёл."""

    kind = "NotWithdrawable"


# =============================================================================
# ARITHMETIC / ASSETS
# =============================================================================


class SlippageExceeded(LedgerError):
    kind = "SlippageExceeded"


class InsufficientLiquidity(LedgerError):
    kind = "InsufficientLiquidity"


class InsufficientShares(LedgerError):
    kind = "InsufficientShares"


class TransferFailed(LedgerError):
    """Слой переводов отклонил движение средств (недостаточный баланс)."""

    kind = "TransferFailed"
