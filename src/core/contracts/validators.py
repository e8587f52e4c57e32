"""
JSON Schema Contract Validators

Модуль для валидации событий ledger согласно формальным JSON Schema контрактам.
Использует библиотеку jsonschema для проверки соответствия данных схемам.

Схемы:
- vault_event.json (события FundingLedger)
- dex_event.json (события ConfidentialOrderBook)
"""

import json
from pathlib import Path
from typing import Any, Dict

import jsonschema
from jsonschema import Draft202012Validator, ValidationError


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    Схемы поставляются как package data в src/core/contracts/schema/.
    """

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'vault_event')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если схема не проходит meta-validation
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Валидируем саму схему (meta-validation)
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}")

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        self.schema = _SCHEMA_LOADER.load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            ValidationError: Если данные не соответствуют схеме
        """
        self.validator.validate(data)

    def __call__(self, data: Dict[str, Any]) -> None:
        self.validate(data)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        """Проверка валидности данных без exception."""
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]):
        """Итератор по всем ошибкам валидации."""
        return self.validator.iter_errors(data)


class VaultEventValidator(ContractValidator):
    """Валидатор событий FundingLedger."""

    def __init__(self):
        super().__init__("vault_event")


class DexEventValidator(ContractValidator):
    """Валидатор событий ConfidentialOrderBook."""

    def __init__(self):
        super().__init__("dex_event")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate_vault_event(data: Dict[str, Any]) -> None:
    """
    Валидация события FundingLedger.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    VaultEventValidator().validate(data)


def validate_dex_event(data: Dict[str, Any]) -> None:
    """
    Валидация события ConfidentialOrderBook.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    DexEventValidator().validate(data)


__all__ = [
    "ValidationError",
    "SchemaLoader",
    "ContractValidator",
    "VaultEventValidator",
    "DexEventValidator",
    "validate_vault_event",
    "validate_dex_event",
]
