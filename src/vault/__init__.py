"""
CryptoVault funding ledger.

Краудфандинг проектов с приватными (зашифрованными) взносами.
"""

from src.vault.funding_ledger import FundingLedger, VaultConfig, WithdrawalResult

__all__ = [
    "FundingLedger",
    "VaultConfig",
    "WithdrawalResult",
]
