"""
Encryption provider — внешний коллаборатор шифрования сумм.

Ledger не выполняет гомоморфных вычислений: провайдер выдаёт
(ciphertext, proof), ledger хранит их как есть. MockEncryptionProvider
повторяет fallback режим фронтенда: base64 от десятичной суммы и
sha256 proof, привязанный к principal.
"""

import base64
import binascii
import hashlib
from typing import Callable, Optional, Protocol

from src.core.domain.ciphertext import EncryptedInput


# (encrypted, principal) -> bool
ProofVerifier = Callable[[EncryptedInput, str], bool]

_PROOF_DOMAIN = b"input_proof"


class EncryptionProvider(Protocol):
    def encrypt(self, amount: int, principal: str) -> EncryptedInput:
        ...

    def verify(self, encrypted: EncryptedInput, principal: str) -> bool:
        ...

    def decrypt(self, encrypted: EncryptedInput) -> int:
        ...


def _derive_proof(ciphertext: bytes, principal: str) -> bytes:
    return hashlib.sha256(_PROOF_DOMAIN + ciphertext + principal.encode("utf-8")).digest()


class MockEncryptionProvider:
    """
    Mock провайдер (не даёт конфиденциальности).

    encrypt(amount) = base64(str(amount)), proof = sha256("input_proof" || ct || principal)
    """

    max_value: int = 2**64 - 1  # euint64

    def encrypt(self, amount: int, principal: str) -> EncryptedInput:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"Invalid value for encryption: {amount!r}")
        if amount > self.max_value:
            raise ValueError(f"Value {amount} does not fit in euint64")
        ciphertext = base64.b64encode(str(amount).encode("ascii"))
        return EncryptedInput(ciphertext=ciphertext, proof=_derive_proof(ciphertext, principal))

    def verify(self, encrypted: EncryptedInput, principal: str) -> bool:
        return encrypted.proof == _derive_proof(encrypted.ciphertext, principal)

    def decrypt(self, encrypted: EncryptedInput) -> int:
        try:
            return int(base64.b64decode(encrypted.ciphertext, validate=True).decode("ascii"))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            raise ValueError("Ciphertext was not produced by MockEncryptionProvider")


def proof_verifier_for(provider: Optional[EncryptionProvider]) -> Optional[ProofVerifier]:
    """Verifier, делегирующий в provider.verify (None если provider не задан)."""
    if provider is None:
        return None
    return provider.verify
