"""
EncryptedInput — непрозрачный ciphertext + proof

Ledger хранит и ретранслирует эти значения без интерпретации.
На входе принимаются bytes или hex-строка "0x...", в JSON отдаётся hex.
"""

from pydantic import BaseModel, Field, field_serializer, field_validator


def _coerce_bytes(value: object) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value[:2] in ("0x", "0X") else value
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Expected hex string, got {value!r}")
    raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


def to_hex(data: bytes) -> str:
    """bytes → "0x..." (lowercase)."""
    return "0x" + data.hex()


class EncryptedInput(BaseModel):
    """
    Зашифрованное значение с proof валидности.

    Immutable модель (frozen=True). Содержимое не расшифровывается ledger.
    """

    ciphertext: bytes = Field(..., description="Opaque ciphertext blob")
    proof: bytes = Field(default=b"", description="Opaque validity proof")

    model_config = {"frozen": True}

    @field_validator("ciphertext", "proof", mode="before")
    @classmethod
    def coerce_bytes(cls, v: object) -> bytes:
        return _coerce_bytes(v)

    @field_validator("ciphertext")
    @classmethod
    def validate_not_empty(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("ciphertext cannot be empty")
        return v

    @field_serializer("ciphertext", "proof", when_used="json")
    def serialize_hex(self, v: bytes) -> str:
        return to_hex(v)

    @property
    def ciphertext_hex(self) -> str:
        return to_hex(self.ciphertext)

    @property
    def proof_hex(self) -> str:
        return to_hex(self.proof)
