"""
Contract Validation Module

Модуль для валидации JSON контрактов событий ledger.
"""

from .validators import (
    ContractValidator,
    DexEventValidator,
    SchemaLoader,
    VaultEventValidator,
    validate_dex_event,
    validate_vault_event,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "VaultEventValidator",
    "DexEventValidator",
    # Functions
    "validate_vault_event",
    "validate_dex_event",
]
