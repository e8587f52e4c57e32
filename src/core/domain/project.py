"""
Project — Модель проекта краудфандинга

Immutable Pydantic модель. FundingLedger хранит текущую версию каждой
записи и заменяет её новым экземпляром (model_copy) при каждом изменении.
"""

from enum import IntEnum

from pydantic import BaseModel, Field, computed_field, field_validator

from .ciphertext import EncryptedInput


# =============================================================================
# ENUMS
# =============================================================================


class ProjectStatus(IntEnum):
    """Статус проекта (числовые значения совпадают с on-chain enum)."""

    ACTIVE = 0  # Принимает взносы
    SUCCESSFUL = 1  # Активен, цель достигнута
    EXPIRED = 2  # Активен, deadline прошёл, цель не достигнута
    WITHDRAWN = 3  # Средства выплачены создателю
    PAUSED = 4  # Деактивирован администратором без выплаты


# =============================================================================
# PROJECT MODEL
# =============================================================================


class Project(BaseModel):
    """
    Модель проекта.

    Инварианты (обеспечиваются FundingLedger):
    - total_raised только растёт, пока is_active и до deadline
    - contributor_count — число уникальных contributors
    - is_active == False терминально
    """

    # Идентификация
    project_id: int = Field(..., gt=0, description="Последовательный идентификатор (с 1)")
    creator: str = Field(..., min_length=1, description="Principal создателя")

    # Описание
    title: str = Field(..., min_length=1, description="Название проекта")
    description: str = Field(default="", description="Описание")
    category: str = Field(default="", description="Категория (DeFi, NFT, ...)")

    # Параметры сбора
    funding_goal: int = Field(..., gt=0, description="Цель сбора (wei)")
    created_at: int = Field(..., ge=0, description="Время создания (Unix, секунды)")
    deadline: int = Field(..., gt=0, description="Deadline (Unix, секунды)")

    # Состояние
    total_raised: int = Field(default=0, ge=0, description="Сумма принятых взносов (wei)")
    contributor_count: int = Field(default=0, ge=0, description="Число уникальных contributors")
    is_active: bool = Field(default=True, description="Принимает взносы / выплату")
    funds_withdrawn: bool = Field(default=False, description="Средства выплачены создателю")

    model_config = {"frozen": True}

    @field_validator("deadline")
    @classmethod
    def validate_deadline_after_creation(cls, v: int, info) -> int:
        if "created_at" in info.data and v <= info.data["created_at"]:
            raise ValueError(f"deadline {v} must be after created_at {info.data['created_at']}")
        return v

    @computed_field
    @property
    def goal_reached(self) -> bool:
        return self.total_raised >= self.funding_goal

    def is_expired(self, now: int) -> bool:
        return now >= self.deadline

    def is_withdrawable(self, now: int) -> bool:
        """Выплата разрешена: цель достигнута или deadline прошёл."""
        return self.is_active and (self.goal_reached or self.is_expired(now))

    def status(self, now: int) -> ProjectStatus:
        if self.funds_withdrawn:
            return ProjectStatus.WITHDRAWN
        if not self.is_active:
            return ProjectStatus.PAUSED
        if self.goal_reached:
            return ProjectStatus.SUCCESSFUL
        if self.is_expired(now):
            return ProjectStatus.EXPIRED
        return ProjectStatus.ACTIVE

    def progress_bps(self) -> int:
        """Прогресс сбора в bps (может превышать 10_000)."""
        return self.total_raised * 10_000 // self.funding_goal


class ContributionRecord(BaseModel):
    """Зашифрованный взнос (audit metadata, не участвует в учёте)."""

    project_id: int = Field(..., gt=0)
    contributor: str = Field(..., min_length=1)
    encrypted: EncryptedInput
    timestamp: int = Field(..., ge=0)

    model_config = {"frozen": True}
