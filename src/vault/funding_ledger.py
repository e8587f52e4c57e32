"""FundingLedger — учёт проектов краудфандинга с приватными взносами.

Жизненный цикл проекта:
- create_project → ACTIVE
- contribute_privately: растит total_raised, пока проект активен и deadline не прошёл
- withdraw_funds: создатель забирает сбор за вычетом platform fee (один раз)
- emergency_pause: администратор деактивирует проект без выплаты

Учёт ведётся по plaintext сумме реально переведённого нативного актива;
ciphertext/proof взноса хранятся как audit metadata без интерпретации.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from src.core.atomic import AtomicLedger, LedgerReceipt
from src.core.clock import Clock
from src.core.contracts import VaultEventValidator
from src.core.domain.ciphertext import EncryptedInput
from src.core.domain.events import EventType
from src.core.domain.project import ContributionRecord, Project, ProjectStatus
from src.core.domain.units import NATIVE_ASSET, bps_to_fraction, days_to_seconds, validate_bps
from src.core.encryption import ProofVerifier
from src.core.errors import (
    FeeTooHigh,
    InvalidAmount,
    InvalidInput,
    NotFound,
    NotWithdrawable,
    ProjectExpired,
    ProjectInactive,
    Unauthorized,
)
from src.core.math.fixed_point import split_fee
from src.core.transfers import AssetLedger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultConfig:
    """Конфигурация FundingLedger.

    - platform_fee_bps: комиссия платформы при выплате (250 = 2.5%)
    - max_platform_fee_bps: потолок комиссии (включительно, 10%)
    - max_duration_days: максимальная длительность сбора
    """
    platform_fee_bps: int = 250
    max_platform_fee_bps: int = 1000
    max_duration_days: int = 365
    native_asset: str = NATIVE_ASSET
    verify_proofs: bool = False

    def __post_init__(self):
        validate_bps(self.platform_fee_bps, "platform_fee_bps")
        validate_bps(self.max_platform_fee_bps, "max_platform_fee_bps")
        if self.max_duration_days <= 0:
            raise ValueError(f"max_duration_days must be positive: {self.max_duration_days}")


@dataclass(frozen=True)
class WithdrawalResult:
    """Результат выплаты создателю."""

    project_id: int
    creator: str
    payout: int
    fee: int
    fee_collector: str


class FundingLedger(AtomicLedger):
    """Ledger проектов краудфандинга.

    Все мутации сериализованы (см. AtomicLedger): ни одна операция не
    видит частично применённый эффект другой, любая ошибка откатывает
    записи, балансы и события.
    """

    name = "vault"

    def __init__(
        self,
        owner: str,
        assets: AssetLedger,
        clock: Optional[Clock] = None,
        config: Optional[VaultConfig] = None,
        proof_verifier: Optional[ProofVerifier] = None,
        address: str = "crypto-vault",
        validate_events: bool = True,
    ):
        """
        Args:
            owner: principal администратора (он же fee collector по умолчанию)
            assets: слой переводов (custody на address)
            clock: источник времени (default SystemClock)
            config: конфигурация ledger
            proof_verifier: проверка proof взносов (только при config.verify_proofs)
            address: custody адрес ledger в AssetLedger
            validate_events: проверять события по JSON Schema
        """
        self.config = config or VaultConfig()
        if self.config.verify_proofs and proof_verifier is None:
            raise ValueError("verify_proofs is enabled but no proof_verifier given")
        if self.config.platform_fee_bps > self.config.max_platform_fee_bps:
            raise ValueError("platform_fee_bps exceeds max_platform_fee_bps")

        super().__init__(
            owner=owner,
            assets=assets,
            clock=clock,
            address=address,
            event_validator=VaultEventValidator() if validate_events else None,
            proof_verifier=proof_verifier if self.config.verify_proofs else None,
        )

        self.platform_fee_bps = self.config.platform_fee_bps
        self.fee_collector = owner

        self._project_counter = 0
        self._projects: Dict[int, Project] = {}
        self._contributions: Dict[Tuple[int, str], int] = {}
        self._encrypted_contributions: Dict[Tuple[int, str], Tuple[ContributionRecord, ...]] = {}

    @property
    def project_counter(self) -> int:
        return self._project_counter

    # -------------------------------------------------------------------------
    # Snapshot для отката транзакций
    # -------------------------------------------------------------------------

    def _snapshot_state(self):
        # Записи immutable, достаточно поверхностных копий таблиц
        return (
            self._project_counter,
            dict(self._projects),
            dict(self._contributions),
            dict(self._encrypted_contributions),
            self.platform_fee_bps,
            self.fee_collector,
        )

    def _restore_state(self, state) -> None:
        (
            self._project_counter,
            self._projects,
            self._contributions,
            self._encrypted_contributions,
            self.platform_fee_bps,
            self.fee_collector,
        ) = state

    # -------------------------------------------------------------------------
    # Мутации
    # -------------------------------------------------------------------------

    def create_project(
        self,
        principal: str,
        title: str,
        description: str,
        category: str,
        funding_goal: int,
        duration_days: int,
    ) -> LedgerReceipt:
        """Создание проекта.

        Returns:
            LedgerReceipt, value = project_id

        Raises:
            InvalidInput: пустой title, funding_goal <= 0, duration вне (0, max]
        """
        if not title:
            raise InvalidInput("Title cannot be empty")
        if isinstance(funding_goal, bool) or not isinstance(funding_goal, int) or funding_goal <= 0:
            raise InvalidInput("Funding goal must be greater than 0")
        if (
            isinstance(duration_days, bool)
            or not isinstance(duration_days, int)
            or duration_days <= 0
            or duration_days > self.config.max_duration_days
        ):
            raise InvalidInput("Invalid duration")

        with self._transaction("createProject") as tx:
            project_id = self._project_counter + 1
            project = Project(
                project_id=project_id,
                creator=principal,
                title=title,
                description=description,
                category=category,
                funding_goal=funding_goal,
                created_at=tx.now,
                deadline=tx.now + days_to_seconds(duration_days),
            )
            self._project_counter = project_id
            self._projects[project_id] = project

            tx.emit(
                EventType.PROJECT_CREATED,
                {
                    "project_id": project_id,
                    "creator": principal,
                    "title": title,
                    "category": category,
                    "funding_goal": str(funding_goal),
                    "deadline": project.deadline,
                },
            )
            receipt = tx.receipt(project_id)

        logger.info(f"Project {project_id} created by {principal}, goal={funding_goal}")
        return receipt

    def contribute_privately(
        self,
        principal: str,
        project_id: int,
        encrypted_amount: EncryptedInput,
        value: int,
    ) -> LedgerReceipt:
        """Приватный взнос в проект.

        Args:
            principal: contributor
            project_id: проект
            encrypted_amount: ciphertext + proof суммы (хранится как есть)
            value: прикреплённая сумма нативного актива (wei), она и идёт в учёт

        Returns:
            LedgerReceipt, value = новый total_raised проекта
        """
        with self._transaction("contributePrivately") as tx:
            project = self._get_project(project_id)
            if not project.is_active:
                raise ProjectInactive("Project is not active")
            if project.is_expired(tx.now):
                raise ProjectExpired("Project funding period has ended")
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidAmount("Contribution must be greater than 0")
            self._verify_proof(encrypted_amount, principal)

            self.assets.transfer(self.config.native_asset, principal, self.address, value)

            key = (project_id, principal)
            previous = self._contributions.get(key, 0)
            is_new_contributor = previous == 0
            self._contributions[key] = previous + value

            project = project.model_copy(
                update={
                    "total_raised": project.total_raised + value,
                    "contributor_count": project.contributor_count + (1 if is_new_contributor else 0),
                }
            )
            self._projects[project_id] = project

            record = ContributionRecord(
                project_id=project_id,
                contributor=principal,
                encrypted=encrypted_amount,
                timestamp=tx.now,
            )
            self._encrypted_contributions[key] = self._encrypted_contributions.get(key, ()) + (record,)

            tx.emit(
                EventType.PRIVATE_CONTRIBUTION_MADE,
                {
                    "project_id": project_id,
                    "contributor": principal,
                    "encrypted_amount": encrypted_amount.ciphertext_hex,
                    "proof": encrypted_amount.proof_hex,
                },
            )
            receipt = tx.receipt(project.total_raised)

        logger.info(
            f"Private contribution to project {project_id}: "
            f"contributors={project.contributor_count}, goal_reached={project.goal_reached}"
        )
        return receipt

    def withdraw_funds(self, principal: str, project_id: int) -> LedgerReceipt:
        """Выплата сбора создателю.

        Деактивация проекта и оба перевода (payout, fee) — одна транзакция.

        Returns:
            LedgerReceipt, value = WithdrawalResult
        """
        with self._transaction("withdrawFunds") as tx:
            project = self._get_project(project_id)
            if principal != project.creator:
                raise Unauthorized("Only project creator can withdraw")
            if not project.is_active:
                raise ProjectInactive("Project is not active")
            if not project.is_withdrawable(tx.now):
                raise NotWithdrawable("Funding goal not reached and deadline not passed")

            self._projects[project_id] = project.model_copy(
                update={"is_active": False, "funds_withdrawn": True}
            )

            payout, fee = split_fee(project.total_raised, self.platform_fee_bps)
            self.assets.transfer(self.config.native_asset, self.address, project.creator, payout)
            self.assets.transfer(self.config.native_asset, self.address, self.fee_collector, fee)

            result = WithdrawalResult(
                project_id=project_id,
                creator=project.creator,
                payout=payout,
                fee=fee,
                fee_collector=self.fee_collector,
            )
            tx.emit(
                EventType.FUNDS_WITHDRAWN,
                {
                    "project_id": project_id,
                    "creator": project.creator,
                    "amount": str(payout),
                    "fee": str(fee),
                    "fee_collector": self.fee_collector,
                },
            )
            receipt = tx.receipt(result)

        logger.info(f"Project {project_id} withdrawn: payout={payout}, fee={fee}")
        return receipt

    def update_platform_fee(self, principal: str, new_fee_bps: int) -> LedgerReceipt:
        """Новая комиссия платформы (только администратор)."""
        with self._transaction("updatePlatformFee") as tx:
            self._require_owner(principal)
            if isinstance(new_fee_bps, bool) or not isinstance(new_fee_bps, int) or new_fee_bps < 0:
                raise InvalidInput("Fee must be a non-negative integer")
            if new_fee_bps > self.config.max_platform_fee_bps:
                raise FeeTooHigh("Fee cannot exceed 10%")

            old_fee = self.platform_fee_bps
            self.platform_fee_bps = new_fee_bps
            tx.emit(
                EventType.PLATFORM_FEE_UPDATED,
                {"old_fee_bps": old_fee, "new_fee_bps": new_fee_bps},
            )
            logger.info(f"Platform fee updated: {bps_to_fraction(old_fee):.2%} -> {bps_to_fraction(new_fee_bps):.2%}")
            return tx.receipt(new_fee_bps)

    def update_fee_collector(self, principal: str, new_collector: str) -> LedgerReceipt:
        with self._transaction("updateFeeCollector") as tx:
            self._require_owner(principal)
            if not new_collector:
                raise InvalidInput("Invalid fee collector")

            old_collector = self.fee_collector
            self.fee_collector = new_collector
            tx.emit(
                EventType.FEE_COLLECTOR_UPDATED,
                {"old_collector": old_collector, "new_collector": new_collector},
            )
            return tx.receipt(new_collector)

    def emergency_pause(self, principal: str, project_id: int) -> LedgerReceipt:
        """Принудительная деактивация проекта (необратима)."""
        with self._transaction("emergencyPause") as tx:
            self._require_owner(principal)
            project = self._get_project(project_id)
            self._projects[project_id] = project.model_copy(update={"is_active": False})
            tx.emit(
                EventType.PROJECT_PAUSED,
                {"project_id": project_id, "paused_by": principal},
            )
            receipt = tx.receipt(project_id)

        logger.warning(f"Project {project_id} paused by administrator")
        return receipt

    # -------------------------------------------------------------------------
    # Чтение
    # -------------------------------------------------------------------------

    def _get_project(self, project_id: int) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFound("Project does not exist")
        return project

    def get_project(self, project_id: int) -> Project:
        with self._lock:
            return self._get_project(project_id)

    def get_project_status(self, project_id: int) -> ProjectStatus:
        with self._lock:
            return self._get_project(project_id).status(self.now())

    def get_active_projects(self) -> List[int]:
        """Id активных проектов в порядке создания."""
        with self._lock:
            return [pid for pid in sorted(self._projects) if self._projects[pid].is_active]

    def get_creator_projects(self, creator: str) -> List[int]:
        with self._lock:
            return [pid for pid in sorted(self._projects) if self._projects[pid].creator == creator]

    def get_contribution(self, project_id: int, contributor: str) -> int:
        with self._lock:
            self._get_project(project_id)
            return self._contributions.get((project_id, contributor), 0)

    def get_encrypted_contributions(self, project_id: int, contributor: str) -> List[ContributionRecord]:
        with self._lock:
            self._get_project(project_id)
            return list(self._encrypted_contributions.get((project_id, contributor), ()))

    def export_state(self) -> dict:
        """Текущие таблицы + журнал событий (JSON-совместимо)."""
        with self._lock:
            return {
                "ledger": self.name,
                "owner": self.owner,
                "platform_fee_bps": self.platform_fee_bps,
                "fee_collector": self.fee_collector,
                "project_counter": self._project_counter,
                "projects": [p.model_dump(mode="json") for _, p in sorted(self._projects.items())],
                "contributions": [
                    {"project_id": pid, "contributor": who, "amount": str(amount)}
                    for (pid, who), amount in sorted(self._contributions.items())
                ],
                "events": self.events.to_records(),
            }
