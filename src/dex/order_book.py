"""ConfidentialOrderBook — торговые пары, приватные ордера и пул ликвидности.

- Торговая пара: одна запись на неупорядоченную пару активов, id симметричен
- Приватный ордер: суммы только в виде ciphertext; Created → Executed (терминально)
- Своп: по административно заданной цене пары с комиссией, из custody пула пары
- Ликвидность: доли пропорциональны стоимости вклада в единицах tokenA

Расчёт приватных ордеров делегирован SettlementHook (по умолчанию — только
флаг исполнения), т.к. суммы ledger не расшифровывает.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from src.core.atomic import AtomicLedger, LedgerReceipt
from src.core.clock import Clock
from src.core.contracts import DexEventValidator
from src.core.domain.ciphertext import EncryptedInput
from src.core.domain.events import EventType
from src.core.domain.trading import LiquidityPosition, Order, OrderType, TradingPair, pair_id_for
from src.core.domain.units import PRICE_SCALE, validate_bps
from src.core.encryption import ProofVerifier
from src.core.errors import (
    AlreadyExecuted,
    AlreadyExists,
    FeeTooHigh,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidAmount,
    InvalidInput,
    NotFound,
    PairInactive,
    SameToken,
    SlippageExceeded,
)
from src.core.math.fixed_point import amounts_for_shares, quote_swap, shares_for_deposit
from src.core.transfers import AssetLedger


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class DexConfig:
    """Конфигурация ConfidentialOrderBook.

    fee_rate_ceiling_bps — исключающий потолок: fee >= ceiling отклоняется.
    """

    default_fee_rate_bps: int = 30  # 0.3%
    fee_rate_ceiling_bps: int = 1000  # 10%
    default_price: int = PRICE_SCALE  # 1:1
    verify_proofs: bool = False

    def __post_init__(self):
        validate_bps(self.default_fee_rate_bps, "default_fee_rate_bps")
        validate_bps(self.fee_rate_ceiling_bps, "fee_rate_ceiling_bps")
        if self.default_price <= 0:
            raise ValueError(f"default_price must be positive: {self.default_price}")


# =============================================================================
# SETTLEMENT
# =============================================================================


class SettlementHook(Protocol):
    """Расчёт исполненного приватного ордера.

    Вызывается внутри транзакции executeOrder; исключение откатывает исполнение.
    """

    def settle(self, order: Order, executor: str, ledger: "ConfidentialOrderBook") -> None:
        ...


class FlagOnlySettlement:
    """Расчёт по умолчанию: только перевод ордера в Executed."""

    def settle(self, order: Order, executor: str, ledger: "ConfidentialOrderBook") -> None:
        return None


@dataclass(frozen=True)
class LiquidityWithdrawal:
    pair_id: str
    shares: int
    amount_a: int
    amount_b: int


# =============================================================================
# ORDER BOOK
# =============================================================================


class ConfidentialOrderBook(AtomicLedger):
    """Ledger конфиденциального DEX."""

    name = "dex"

    def __init__(
        self,
        owner: str,
        assets: AssetLedger,
        clock: Optional[Clock] = None,
        config: Optional[DexConfig] = None,
        settlement: Optional[SettlementHook] = None,
        proof_verifier: Optional[ProofVerifier] = None,
        address: str = "confidential-dex",
        validate_events: bool = True,
    ):
        self.config = config or DexConfig()
        if self.config.verify_proofs and proof_verifier is None:
            raise ValueError("verify_proofs is enabled but no proof_verifier given")
        if self.config.default_fee_rate_bps >= self.config.fee_rate_ceiling_bps:
            raise ValueError("default_fee_rate_bps must be below fee_rate_ceiling_bps")

        super().__init__(
            owner=owner,
            assets=assets,
            clock=clock,
            address=address,
            event_validator=DexEventValidator() if validate_events else None,
            proof_verifier=proof_verifier if self.config.verify_proofs else None,
        )

        self.default_fee_rate_bps = self.config.default_fee_rate_bps
        self.settlement: SettlementHook = settlement or FlagOnlySettlement()

        self._order_counter = 0
        self._pairs: Dict[str, TradingPair] = {}
        self._pair_order: Tuple[str, ...] = ()
        self._orders: Dict[int, Order] = {}
        self._user_orders: Dict[str, Tuple[int, ...]] = {}
        self._positions: Dict[Tuple[str, str], LiquidityPosition] = {}

    @property
    def order_counter(self) -> int:
        return self._order_counter

    @staticmethod
    def get_pair_id(token_a: str, token_b: str) -> str:
        return pair_id_for(token_a, token_b)

    # -------------------------------------------------------------------------
    # Snapshot для отката транзакций
    # -------------------------------------------------------------------------

    def _snapshot_state(self):
        return (
            self._order_counter,
            dict(self._pairs),
            self._pair_order,
            dict(self._orders),
            dict(self._user_orders),
            dict(self._positions),
            self.default_fee_rate_bps,
        )

    def _restore_state(self, state) -> None:
        (
            self._order_counter,
            self._pairs,
            self._pair_order,
            self._orders,
            self._user_orders,
            self._positions,
            self.default_fee_rate_bps,
        ) = state

    # -------------------------------------------------------------------------
    # Проверки
    # -------------------------------------------------------------------------

    def _validate_fee_rate(self, fee_rate_bps: int) -> None:
        if isinstance(fee_rate_bps, bool) or not isinstance(fee_rate_bps, int) or fee_rate_bps < 0:
            raise InvalidInput("Fee rate must be a non-negative integer")
        if fee_rate_bps >= self.config.fee_rate_ceiling_bps:
            raise FeeTooHigh("Fee rate too high")

    @staticmethod
    def _validate_positive(amount: int, message: str) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(message)

    def _get_pair(self, pair_id: str) -> TradingPair:
        pair = self._pairs.get(pair_id)
        if pair is None:
            raise NotFound("Trading pair does not exist")
        return pair

    def _active_pair_for(self, token_in: str, token_out: str) -> TradingPair:
        pair = self._pairs.get(pair_id_for(token_in, token_out))
        if (
            pair is None
            or not pair.is_active
            or token_in == token_out
            or not (pair.has_token(token_in) and pair.has_token(token_out))
        ):
            raise PairInactive("Trading pair not active")
        return pair

    # -------------------------------------------------------------------------
    # Торговые пары
    # -------------------------------------------------------------------------

    def create_trading_pair(
        self,
        principal: str,
        token_a: str,
        token_b: str,
        fee_rate_bps: Optional[int] = None,
    ) -> LedgerReceipt:
        """Создание пары (только администратор).

        Args:
            fee_rate_bps: комиссия пары; None — текущая default_fee_rate_bps

        Returns:
            LedgerReceipt, value = pair_id
        """
        with self._transaction("createTradingPair") as tx:
            self._require_owner(principal)
            if not token_a or not token_b:
                raise InvalidInput("Token identifiers cannot be empty")
            if token_a == token_b:
                raise SameToken("Tokens must be different")
            fee = self.default_fee_rate_bps if fee_rate_bps is None else fee_rate_bps
            self._validate_fee_rate(fee)

            pair_id = pair_id_for(token_a, token_b)
            if pair_id in self._pairs:
                raise AlreadyExists("Pair already exists")

            self._pairs[pair_id] = TradingPair(
                pair_id=pair_id,
                token_a=token_a,
                token_b=token_b,
                fee_rate_bps=fee,
                price=self.config.default_price,
                created_at=tx.now,
            )
            self._pair_order = self._pair_order + (pair_id,)

            tx.emit(
                EventType.TRADING_PAIR_CREATED,
                {"pair_id": pair_id, "token_a": token_a, "token_b": token_b, "fee_rate_bps": fee},
            )
            receipt = tx.receipt(pair_id)

        logger.info(f"Trading pair {token_a}/{token_b} created ({pair_id[:10]}..., fee={fee}bps)")
        return receipt

    def update_default_fee_rate(self, principal: str, new_fee_rate_bps: int) -> LedgerReceipt:
        with self._transaction("updateDefaultFeeRate") as tx:
            self._require_owner(principal)
            self._validate_fee_rate(new_fee_rate_bps)
            old = self.default_fee_rate_bps
            self.default_fee_rate_bps = new_fee_rate_bps
            tx.emit(
                EventType.DEFAULT_FEE_RATE_UPDATED,
                {"old_fee_rate_bps": old, "new_fee_rate_bps": new_fee_rate_bps},
            )
            return tx.receipt(new_fee_rate_bps)

    def update_pair_price(self, principal: str, pair_id: str, new_price: int) -> LedgerReceipt:
        """Новая цена пары: tokenB за 1 tokenA * PRICE_SCALE."""
        with self._transaction("updatePairPrice") as tx:
            self._require_owner(principal)
            pair = self._get_pair(pair_id)
            self._validate_positive(new_price, "Price must be greater than 0")
            self._pairs[pair_id] = pair.model_copy(update={"price": new_price})
            tx.emit(
                EventType.PAIR_PRICE_UPDATED,
                {"pair_id": pair_id, "old_price": str(pair.price), "new_price": str(new_price)},
            )
            return tx.receipt(new_price)

    def toggle_pair_status(self, principal: str, pair_id: str) -> LedgerReceipt:
        with self._transaction("togglePairStatus") as tx:
            self._require_owner(principal)
            pair = self._get_pair(pair_id)
            is_active = not pair.is_active
            self._pairs[pair_id] = pair.model_copy(update={"is_active": is_active})
            tx.emit(EventType.PAIR_STATUS_TOGGLED, {"pair_id": pair_id, "is_active": is_active})
            receipt = tx.receipt(is_active)

        logger.info(f"Trading pair {pair_id[:10]}... {'activated' if is_active else 'deactivated'}")
        return receipt

    # -------------------------------------------------------------------------
    # Приватные ордера
    # -------------------------------------------------------------------------

    def create_private_order(
        self,
        principal: str,
        token_in: str,
        token_out: str,
        encrypted_amount_in: EncryptedInput,
        encrypted_amount_out: EncryptedInput,
        order_type: OrderType,
    ) -> LedgerReceipt:
        """Создание приватного ордера.

        Суммы не публикуются: событие несёт только (id, trader, tokens, type).

        Returns:
            LedgerReceipt, value = order_id
        """
        with self._transaction("createPrivateOrder") as tx:
            pair = self._active_pair_for(token_in, token_out)
            try:
                order_type = OrderType(order_type)
            except ValueError:
                raise InvalidInput("Invalid order type")
            self._verify_proof(encrypted_amount_in, principal)
            self._verify_proof(encrypted_amount_out, principal)

            order_id = self._order_counter + 1
            self._orders[order_id] = Order(
                order_id=order_id,
                trader=principal,
                pair_id=pair.pair_id,
                token_in=token_in,
                token_out=token_out,
                encrypted_amount_in=encrypted_amount_in,
                encrypted_amount_out=encrypted_amount_out,
                order_type=order_type,
                created_at=tx.now,
            )
            self._order_counter = order_id
            self._user_orders[principal] = self._user_orders.get(principal, ()) + (order_id,)

            tx.emit(
                EventType.PRIVATE_ORDER_CREATED,
                {
                    "order_id": order_id,
                    "trader": principal,
                    "token_in": token_in,
                    "token_out": token_out,
                    "order_type": int(order_type),
                },
            )
            receipt = tx.receipt(order_id)

        logger.info(f"Private order {order_id} created by {principal} ({order_type.name})")
        return receipt

    def execute_order(self, principal: str, order_id: int) -> LedgerReceipt:
        """Исполнение ордера: Created → Executed, затем settlement hook."""
        with self._transaction("executeOrder") as tx:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFound("Order does not exist")
            if not order.is_active:
                raise AlreadyExecuted("Order not active")

            executed = order.model_copy(
                update={"is_active": False, "executed_at": tx.now, "executed_by": principal}
            )
            self._orders[order_id] = executed
            self.settlement.settle(executed, principal, self)

            tx.emit(
                EventType.ORDER_EXECUTED,
                {
                    "order_id": order_id,
                    "trader": order.trader,
                    "executor": principal,
                    "executed_at": tx.now,
                },
            )
            receipt = tx.receipt(order_id)

        logger.info(f"Order {order_id} executed by {principal}")
        return receipt

    # -------------------------------------------------------------------------
    # Своп
    # -------------------------------------------------------------------------

    def swap_tokens(
        self,
        principal: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
    ) -> LedgerReceipt:
        """Своп по цене пары.

        Returns:
            LedgerReceipt, value = amount_out

        Raises:
            PairInactive: пары нет или она неактивна
            SlippageExceeded: amount_out < min_amount_out
            InsufficientLiquidity: в пуле пары не хватает token_out
            TransferFailed: у вызывающего не хватает token_in
        """
        with self._transaction("swapTokens") as tx:
            pair = self._active_pair_for(token_in, token_out)
            self._validate_positive(amount_in, "Amount must be greater than 0")
            if isinstance(min_amount_out, bool) or not isinstance(min_amount_out, int) or min_amount_out < 0:
                raise InvalidAmount("Minimum output must be a non-negative integer")

            a_to_b = pair.is_a_to_b(token_in, token_out)
            quote = quote_swap(amount_in, pair.price, pair.fee_rate_bps, a_to_b)
            if quote.amount_out == 0 or quote.amount_out < min_amount_out:
                raise SlippageExceeded("Insufficient output amount")
            if quote.amount_out > pair.reserve_of(token_out):
                raise InsufficientLiquidity("Insufficient liquidity")

            self.assets.transfer(token_in, principal, self.address, amount_in)
            self.assets.transfer(token_out, self.address, principal, quote.amount_out)

            if a_to_b:
                reserves = {
                    "reserve_a": pair.reserve_a + amount_in,
                    "reserve_b": pair.reserve_b - quote.amount_out,
                }
            else:
                reserves = {
                    "reserve_a": pair.reserve_a - quote.amount_out,
                    "reserve_b": pair.reserve_b + amount_in,
                }
            self._pairs[pair.pair_id] = pair.model_copy(
                update={**reserves, "total_volume_a": pair.total_volume_a + quote.volume_a}
            )

            tx.emit(
                EventType.TOKENS_SWAPPED,
                {
                    "pair_id": pair.pair_id,
                    "trader": principal,
                    "token_in": token_in,
                    "token_out": token_out,
                    "amount_in": str(amount_in),
                    "amount_out": str(quote.amount_out),
                    "fee": str(quote.fee),
                },
            )
            receipt = tx.receipt(quote.amount_out)

        logger.info(f"Swap {amount_in} {token_in} -> {quote.amount_out} {token_out} by {principal}")
        return receipt

    # -------------------------------------------------------------------------
    # Ликвидность
    # -------------------------------------------------------------------------

    def add_liquidity(
        self,
        principal: str,
        token_a: str,
        token_b: str,
        amount_a: int,
        amount_b: int,
        encrypted_amount_a: EncryptedInput,
        encrypted_amount_b: EncryptedInput,
    ) -> LedgerReceipt:
        """Внесение ликвидности в пул пары.

        amount_a / amount_b соответствуют token_a / token_b вызова (порядок
        может не совпадать с порядком в паре).

        Returns:
            LedgerReceipt, value = выпущенные доли
        """
        with self._transaction("addLiquidity") as tx:
            pair = self._active_pair_for(token_a, token_b)
            for amount in (amount_a, amount_b):
                if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                    raise InvalidAmount("Liquidity amounts must be non-negative integers")
            self._verify_proof(encrypted_amount_a, principal)
            self._verify_proof(encrypted_amount_b, principal)

            # Приведение к ориентации пары
            if token_a != pair.token_a:
                amount_a, amount_b = amount_b, amount_a

            shares = shares_for_deposit(
                amount_a,
                amount_b,
                pair.price,
                pair.reserve_a,
                pair.reserve_b,
                pair.total_shares,
            )
            if shares <= 0:
                raise InvalidAmount("Insufficient liquidity minted")

            self.assets.transfer(pair.token_a, principal, self.address, amount_a)
            self.assets.transfer(pair.token_b, principal, self.address, amount_b)

            self._pairs[pair.pair_id] = pair.model_copy(
                update={
                    "reserve_a": pair.reserve_a + amount_a,
                    "reserve_b": pair.reserve_b + amount_b,
                    "total_shares": pair.total_shares + shares,
                }
            )
            key = (principal, pair.pair_id)
            position = self._positions.get(key) or LiquidityPosition(provider=principal, pair_id=pair.pair_id)
            self._positions[key] = position.model_copy(update={"shares": position.shares + shares})

            tx.emit(
                EventType.LIQUIDITY_ADDED,
                {"pair_id": pair.pair_id, "provider": principal, "shares": str(shares)},
            )
            return tx.receipt(shares)

    def remove_liquidity(
        self,
        principal: str,
        token_a: str,
        token_b: str,
        shares: int,
    ) -> LedgerReceipt:
        """Погашение долей: пропорциональная часть резервов на момент погашения.

        Returns:
            LedgerReceipt, value = LiquidityWithdrawal
        """
        with self._transaction("removeLiquidity") as tx:
            pair = self._get_pair(pair_id_for(token_a, token_b))
            self._validate_positive(shares, "Shares must be greater than 0")
            key = (principal, pair.pair_id)
            position = self._positions.get(key)
            balance = position.shares if position else 0
            if balance < shares:
                raise InsufficientShares("Insufficient liquidity shares")

            out_a, out_b = amounts_for_shares(shares, pair.reserve_a, pair.reserve_b, pair.total_shares)

            self._positions[key] = position.model_copy(update={"shares": balance - shares})
            self._pairs[pair.pair_id] = pair.model_copy(
                update={
                    "reserve_a": pair.reserve_a - out_a,
                    "reserve_b": pair.reserve_b - out_b,
                    "total_shares": pair.total_shares - shares,
                }
            )
            self.assets.transfer(pair.token_a, self.address, principal, out_a)
            self.assets.transfer(pair.token_b, self.address, principal, out_b)

            result = LiquidityWithdrawal(pair_id=pair.pair_id, shares=shares, amount_a=out_a, amount_b=out_b)
            tx.emit(
                EventType.LIQUIDITY_REMOVED,
                {
                    "pair_id": pair.pair_id,
                    "provider": principal,
                    "shares": str(shares),
                    "amount_a": str(out_a),
                    "amount_b": str(out_b),
                },
            )
            return tx.receipt(result)

    # -------------------------------------------------------------------------
    # Чтение
    # -------------------------------------------------------------------------

    def get_trading_pair(self, pair_id: str) -> TradingPair:
        with self._lock:
            return self._get_pair(pair_id)

    def get_pair_price(self, pair_id: str) -> int:
        with self._lock:
            return self._get_pair(pair_id).price

    def get_all_pairs(self) -> List[TradingPair]:
        """Пары в порядке создания."""
        with self._lock:
            return [self._pairs[pid] for pid in self._pair_order]

    def get_order(self, order_id: int) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFound("Order does not exist")
            return order

    def get_user_orders(self, trader: str) -> List[int]:
        with self._lock:
            return list(self._user_orders.get(trader, ()))

    def get_user_liquidity_shares(self, provider: str, pair_id: str) -> int:
        with self._lock:
            position = self._positions.get((provider, pair_id))
            return position.shares if position else 0

    def export_state(self) -> dict:
        """Текущие таблицы + журнал событий (JSON-совместимо)."""
        with self._lock:
            return {
                "ledger": self.name,
                "owner": self.owner,
                "default_fee_rate_bps": self.default_fee_rate_bps,
                "order_counter": self._order_counter,
                "pairs": [self._pairs[pid].model_dump(mode="json") for pid in self._pair_order],
                "orders": [o.model_dump(mode="json") for _, o in sorted(self._orders.items())],
                "positions": [
                    p.model_dump(mode="json") for _, p in sorted(self._positions.items()) if p.shares
                ],
                "events": self.events.to_records(),
            }
