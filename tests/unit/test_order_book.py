"""
Тесты ConfidentialOrderBook.

Coverage:
- торговые пары: создание, id, ограничения комиссии, администрирование
- приватные ордера: последовательные id, reverse index, исполнение, settlement hook
- свопы: котировка, slippage, ликвидность пула, объём в tokenA
- ликвидность: выпуск и погашение долей, ориентация токенов
"""

import pytest

from src.core.domain.events import EventType
from src.core.domain.trading import OrderType, pair_id_for
from src.core.domain.units import PRICE_SCALE
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
    TransferFailed,
    Unauthorized,
)
from src.dex.order_book import ConfidentialOrderBook, DexConfig, LiquidityWithdrawal


OWNER = "owner"
TKA = "TKA"
TKB = "TKB"


def place_order(dex, encryption, trader="trader1", token_in=TKA, token_out=TKB, order_type=OrderType.BUY):
    return dex.create_private_order(
        trader,
        token_in,
        token_out,
        encryption.encrypt(100, trader),
        encryption.encrypt(95, trader),
        order_type,
    ).value


def add_liquidity(dex, encryption, provider, amount_a, amount_b, token_a=TKA, token_b=TKB):
    return dex.add_liquidity(
        provider,
        token_a,
        token_b,
        amount_a,
        amount_b,
        encryption.encrypt(amount_a, provider),
        encryption.encrypt(amount_b, provider),
    ).value


# =============================================================================
# TRADING PAIRS
# =============================================================================


class TestTradingPairs:
    def test_create_pair(self, dex, clock):
        receipt = dex.create_trading_pair(OWNER, TKA, TKB, 50)
        pair = dex.get_trading_pair(receipt.value)
        assert receipt.value == dex.get_pair_id(TKA, TKB)
        assert (pair.token_a, pair.token_b) == (TKA, TKB)
        assert pair.fee_rate_bps == 50
        assert pair.is_active
        assert pair.price == PRICE_SCALE
        assert pair.total_volume_a == 0
        assert pair.created_at == clock.now()
        assert receipt.events[0].payload == {
            "pair_id": receipt.value,
            "token_a": TKA,
            "token_b": TKB,
            "fee_rate_bps": 50,
        }

    def test_pair_id_symmetric(self, dex):
        assert ConfidentialOrderBook.get_pair_id(TKA, TKB) == dex.get_pair_id(TKB, TKA)
        assert len(dex.get_pair_id(TKA, TKB)) == 66

    def test_pair_id_distinguishes_separator_in_identifiers(self, dex, encryption):
        first = dex.create_trading_pair(OWNER, "a\x00b", "c", 10).value
        second = dex.create_trading_pair(OWNER, "a", "b\x00c", 10).value
        assert first != second
        assert pair_id_for("a:b", "c") != pair_id_for("a", "b:c")

        order_id = place_order(dex, encryption, token_in="a", token_out="b\x00c")
        assert dex.get_order(order_id).pair_id == second
        with pytest.raises(InsufficientLiquidity):
            dex.swap_tokens("trader1", "a", "b\x00c", 10, 0)

    def test_default_fee_used_when_omitted(self, dex):
        pid = dex.create_trading_pair(OWNER, TKA, TKB).value
        assert dex.get_trading_pair(pid).fee_rate_bps == 30

    def test_same_token_rejected(self, dex):
        with pytest.raises(SameToken, match="Tokens must be different"):
            dex.create_trading_pair(OWNER, TKA, TKA, 50)

    @pytest.mark.parametrize("fee", [1000, 1500, 10_000])
    def test_fee_ceiling(self, dex, fee):
        with pytest.raises(FeeTooHigh, match="Fee rate too high"):
            dex.create_trading_pair(OWNER, TKA, TKB, fee)
        assert dex.get_all_pairs() == []

    def test_fee_just_below_ceiling(self, dex):
        pid = dex.create_trading_pair(OWNER, TKA, TKB, 999).value
        assert dex.get_trading_pair(pid).fee_rate_bps == 999

    def test_duplicate_rejected_in_either_order(self, dex):
        dex.create_trading_pair(OWNER, TKA, TKB, 50)
        with pytest.raises(AlreadyExists, match="Pair already exists"):
            dex.create_trading_pair(OWNER, TKA, TKB, 50)
        with pytest.raises(AlreadyExists):
            dex.create_trading_pair(OWNER, TKB, TKA, 50)

    def test_owner_only(self, dex):
        with pytest.raises(Unauthorized):
            dex.create_trading_pair("trader1", TKA, TKB, 50)

    def test_all_pairs_in_creation_order(self, dex):
        first = dex.create_trading_pair(OWNER, TKB, "TKC", 10).value
        second = dex.create_trading_pair(OWNER, TKA, TKB, 10).value
        assert [p.pair_id for p in dex.get_all_pairs()] == [first, second]

    def test_unknown_pair(self, dex):
        with pytest.raises(NotFound):
            dex.get_trading_pair(pair_id_for("X", "Y"))


class TestPairAdministration:
    def test_update_default_fee_rate(self, dex):
        with pytest.raises(FeeTooHigh):
            dex.update_default_fee_rate(OWNER, 1500)
        assert dex.default_fee_rate_bps == 30

        receipt = dex.update_default_fee_rate(OWNER, 100)
        assert dex.default_fee_rate_bps == 100
        assert receipt.events[0].payload == {"old_fee_rate_bps": 30, "new_fee_rate_bps": 100}

        pid = dex.create_trading_pair(OWNER, TKA, TKB).value
        assert dex.get_trading_pair(pid).fee_rate_bps == 100

    def test_default_fee_rate_validation(self, dex):
        with pytest.raises(InvalidInput):
            dex.update_default_fee_rate(OWNER, -1)
        with pytest.raises(Unauthorized):
            dex.update_default_fee_rate("trader1", 10)

    def test_update_pair_price(self, dex, pair_id):
        receipt = dex.update_pair_price(OWNER, pair_id, 2 * PRICE_SCALE)
        assert dex.get_pair_price(pair_id) == 2 * PRICE_SCALE
        assert receipt.events[0].payload == {
            "pair_id": pair_id,
            "old_price": str(PRICE_SCALE),
            "new_price": str(2 * PRICE_SCALE),
        }

    def test_pair_price_must_be_positive(self, dex, pair_id):
        with pytest.raises(InvalidAmount):
            dex.update_pair_price(OWNER, pair_id, 0)

    def test_price_of_unknown_pair(self, dex):
        with pytest.raises(NotFound):
            dex.update_pair_price(OWNER, pair_id_for("X", "Y"), PRICE_SCALE)

    def test_toggle_pair_status(self, dex, pair_id):
        assert dex.toggle_pair_status(OWNER, pair_id).value is False
        assert not dex.get_trading_pair(pair_id).is_active
        assert dex.toggle_pair_status(OWNER, pair_id).value is True
        assert dex.get_trading_pair(pair_id).is_active

    def test_toggle_owner_only(self, dex, pair_id):
        with pytest.raises(Unauthorized):
            dex.toggle_pair_status("trader1", pair_id)

    def test_config_validation(self, assets, clock):
        with pytest.raises(ValueError, match="below fee_rate_ceiling_bps"):
            ConfidentialOrderBook(OWNER, assets, clock, config=DexConfig(default_fee_rate_bps=1000))


# =============================================================================
# PRIVATE ORDERS
# =============================================================================


class TestPrivateOrders:
    def test_create_order(self, dex, encryption, pair_id, clock):
        order_id = place_order(dex, encryption)
        order = dex.get_order(order_id)
        assert order_id == 1
        assert order.trader == "trader1"
        assert order.pair_id == pair_id
        assert order.is_active
        assert order.order_type == OrderType.BUY
        assert order.created_at == clock.now()
        assert encryption.decrypt(order.encrypted_amount_in) == 100
        assert dex.get_user_orders("trader1") == [1]

    def test_event_hides_amounts(self, dex, encryption, pair_id):
        place_order(dex, encryption, order_type=OrderType.SELL)
        event = dex.events.of_type(EventType.PRIVATE_ORDER_CREATED)[0]
        assert event.payload == {
            "order_id": 1,
            "trader": "trader1",
            "token_in": TKA,
            "token_out": TKB,
            "order_type": 1,
        }

    def test_ids_sequential_across_traders(self, dex, encryption, pair_id):
        assert place_order(dex, encryption, trader="trader1") == 1
        assert place_order(dex, encryption, trader="trader2", token_in=TKB, token_out=TKA) == 2
        assert place_order(dex, encryption, trader="trader1") == 3
        assert dex.get_user_orders("trader1") == [1, 3]
        assert dex.get_user_orders("trader2") == [2]
        assert dex.get_user_orders("nobody") == []
        assert dex.order_counter == 3

    def test_invalid_order_type(self, dex, encryption, pair_id):
        with pytest.raises(InvalidInput, match="Invalid order type"):
            place_order(dex, encryption, order_type=7)
        assert dex.order_counter == 0
        assert dex.get_user_orders("trader1") == []

    def test_requires_existing_pair(self, dex, encryption):
        with pytest.raises(PairInactive, match="Trading pair not active"):
            place_order(dex, encryption)
        assert dex.order_counter == 0

    def test_requires_active_pair(self, dex, encryption, pair_id):
        dex.toggle_pair_status(OWNER, pair_id)
        with pytest.raises(PairInactive):
            place_order(dex, encryption)

    def test_execute_order(self, dex, encryption, pair_id, clock):
        order_id = place_order(dex, encryption)
        clock.advance(60)
        receipt = dex.execute_order("matcher", order_id)

        order = dex.get_order(order_id)
        assert not order.is_active
        assert order.executed_at == clock.now()
        assert order.executed_by == "matcher"
        assert receipt.events[0].payload == {
            "order_id": order_id,
            "trader": "trader1",
            "executor": "matcher",
            "executed_at": clock.now(),
        }

    def test_execute_twice_fails(self, dex, encryption, pair_id):
        order_id = place_order(dex, encryption)
        dex.execute_order("trader1", order_id)
        with pytest.raises(AlreadyExecuted, match="Order not active"):
            dex.execute_order("trader1", order_id)
        assert not dex.get_order(order_id).is_active

    def test_execute_unknown(self, dex):
        with pytest.raises(NotFound, match="Order does not exist"):
            dex.execute_order("trader1", 7)


class TestSettlementHook:
    class Recorder:
        def __init__(self):
            self.calls = []

        def settle(self, order, executor, ledger):
            self.calls.append((order.order_id, order.is_active, executor))

    class Rejecting:
        def settle(self, order, executor, ledger):
            raise RuntimeError("settlement provider unavailable")

    def make_dex(self, assets, clock, settlement):
        dex = ConfidentialOrderBook(OWNER, assets, clock, settlement=settlement)
        dex.create_trading_pair(OWNER, TKA, TKB, 30)
        return dex

    def test_hook_receives_executed_order(self, assets, clock, encryption):
        recorder = self.Recorder()
        dex = self.make_dex(assets, clock, recorder)
        order_id = place_order(dex, encryption)
        dex.execute_order("matcher", order_id)
        assert recorder.calls == [(order_id, False, "matcher")]

    def test_failing_hook_rolls_back_execution(self, assets, clock, encryption):
        dex = self.make_dex(assets, clock, self.Rejecting())
        order_id = place_order(dex, encryption)
        events_before = len(dex.events)

        with pytest.raises(RuntimeError, match="unavailable"):
            dex.execute_order("matcher", order_id)

        order = dex.get_order(order_id)
        assert order.is_active
        assert order.executed_by is None
        assert len(dex.events) == events_before


# =============================================================================
# SWAPS
# =============================================================================


class TestSwaps:
    @pytest.fixture
    def funded_pair(self, dex, encryption, pair_id):
        add_liquidity(dex, encryption, "lp1", 1_000_000, 1_000_000)
        return pair_id

    def test_swap_a_to_b(self, dex, assets, funded_pair):
        before_a = assets.balance_of(TKA, "trader1")
        before_b = assets.balance_of(TKB, "trader1")

        receipt = dex.swap_tokens("trader1", TKA, TKB, 10_000, 9_970)

        assert receipt.value == 9_970
        assert assets.balance_of(TKA, "trader1") == before_a - 10_000
        assert assets.balance_of(TKB, "trader1") == before_b + 9_970
        pair = dex.get_trading_pair(funded_pair)
        assert (pair.reserve_a, pair.reserve_b) == (1_010_000, 990_030)
        assert pair.total_volume_a == 10_000
        assert receipt.events[0].payload["fee"] == "30"

    def test_volume_counts_tokenA_leg_both_directions(self, dex, funded_pair):
        dex.swap_tokens("trader1", TKA, TKB, 10_000, 0)
        dex.swap_tokens("trader1", TKB, TKA, 9_970, 0)
        pair = dex.get_trading_pair(funded_pair)
        assert pair.total_volume_a == 10_000 + 9_941
        assert (pair.reserve_a, pair.reserve_b) == (1_010_000 - 9_941, 1_000_000)

    def test_swap_uses_pair_price(self, dex, funded_pair):
        dex.update_pair_price(OWNER, funded_pair, 2 * PRICE_SCALE)
        assert dex.swap_tokens("trader1", TKA, TKB, 1_000, 0).value == 1_994
        assert dex.swap_tokens("trader1", TKB, TKA, 1_000, 0).value == 499

    def test_slippage(self, dex, assets, funded_pair):
        before = assets.balance_of(TKA, "trader1")
        with pytest.raises(SlippageExceeded, match="Insufficient output amount"):
            dex.swap_tokens("trader1", TKA, TKB, 10_000, 9_971)
        assert assets.balance_of(TKA, "trader1") == before
        assert dex.get_trading_pair(funded_pair).total_volume_a == 0

    def test_zero_output_rejected(self, dex, assets, funded_pair):
        dex.update_pair_price(OWNER, funded_pair, 2 * PRICE_SCALE)
        before = assets.balance_of(TKB, "trader1")
        with pytest.raises(SlippageExceeded, match="Insufficient output amount"):
            dex.swap_tokens("trader1", TKB, TKA, 1, 0)
        assert assets.balance_of(TKB, "trader1") == before
        assert dex.get_trading_pair(funded_pair).total_volume_a == 0

    def test_insufficient_liquidity(self, dex, pair_id):
        with pytest.raises(InsufficientLiquidity):
            dex.swap_tokens("trader1", TKA, TKB, 100, 0)

    def test_swap_larger_than_reserve(self, dex, funded_pair):
        with pytest.raises(InsufficientLiquidity):
            dex.swap_tokens("trader1", TKA, TKB, 2_000_000, 0)

    def test_caller_without_funds(self, dex, assets, funded_pair):
        with pytest.raises(TransferFailed):
            dex.swap_tokens("pauper", TKA, TKB, 10, 0)
        pair = dex.get_trading_pair(funded_pair)
        assert (pair.reserve_a, pair.reserve_b) == (1_000_000, 1_000_000)
        assert assets.balance_of(TKB, "pauper") == 0

    def test_inactive_pair(self, dex, funded_pair):
        dex.toggle_pair_status(OWNER, funded_pair)
        with pytest.raises(PairInactive):
            dex.swap_tokens("trader1", TKA, TKB, 10, 0)

    def test_invalid_amounts(self, dex, funded_pair):
        with pytest.raises(InvalidAmount):
            dex.swap_tokens("trader1", TKA, TKB, 0, 0)
        with pytest.raises(InvalidAmount):
            dex.swap_tokens("trader1", TKA, TKB, 10, -1)


# =============================================================================
# LIQUIDITY
# =============================================================================


class TestLiquidity:
    def test_first_deposit(self, dex, encryption, assets, pair_id):
        shares = add_liquidity(dex, encryption, "lp1", 1_000_000, 1_000_000)
        assert shares == 2_000_000
        assert dex.get_user_liquidity_shares("lp1", pair_id) == 2_000_000
        assert assets.balance_of(TKA, dex.address) == 1_000_000
        pair = dex.get_trading_pair(pair_id)
        assert pair.total_shares == 2_000_000

    def test_second_deposit_proportional(self, dex, encryption, pair_id):
        add_liquidity(dex, encryption, "lp1", 1_000_000, 1_000_000)
        assert add_liquidity(dex, encryption, "lp2", 500_000, 500_000) == 1_000_000

    def test_reversed_token_order_maps_to_pair(self, dex, encryption, assets, pair_id):
        before_a = assets.balance_of(TKA, "lp1")
        shares = add_liquidity(dex, encryption, "lp1", 300, 100, token_a=TKB, token_b=TKA)
        pair = dex.get_trading_pair(pair_id)
        assert (pair.reserve_a, pair.reserve_b) == (100, 300)
        assert shares == 400
        assert assets.balance_of(TKA, "lp1") == before_a - 100

    def test_zero_value_deposit_rejected(self, dex, encryption, pair_id):
        with pytest.raises(InvalidAmount, match="Insufficient liquidity minted"):
            add_liquidity(dex, encryption, "lp1", 0, 0)

    def test_requires_active_pair(self, dex, encryption, pair_id):
        dex.toggle_pair_status(OWNER, pair_id)
        with pytest.raises(PairInactive):
            add_liquidity(dex, encryption, "lp1", 10, 10)

    def test_remove_returns_pro_rata_at_removal_time(self, dex, encryption, assets, pair_id):
        add_liquidity(dex, encryption, "lp1", 1_000_000, 1_000_000)
        add_liquidity(dex, encryption, "lp2", 500_000, 500_000)

        result = dex.remove_liquidity("lp1", TKA, TKB, 2_000_000).value
        assert result == LiquidityWithdrawal(
            pair_id=pair_id, shares=2_000_000, amount_a=1_000_000, amount_b=1_000_000
        )

        result = dex.remove_liquidity("lp2", TKB, TKA, 1_000_000).value
        assert (result.amount_a, result.amount_b) == (500_000, 500_000)

        pair = dex.get_trading_pair(pair_id)
        assert (pair.reserve_a, pair.reserve_b, pair.total_shares) == (0, 0, 0)
        assert assets.balance_of(TKA, dex.address) == 0

    def test_remove_in_two_steps_reaches_zero(self, dex, encryption, pair_id):
        shares = add_liquidity(dex, encryption, "lp1", 1_001, 333)
        dex.remove_liquidity("lp1", TKA, TKB, shares // 3)
        dex.remove_liquidity("lp1", TKA, TKB, dex.get_user_liquidity_shares("lp1", pair_id))
        assert dex.get_user_liquidity_shares("lp1", pair_id) == 0
        pair = dex.get_trading_pair(pair_id)
        assert (pair.reserve_a, pair.reserve_b, pair.total_shares) == (0, 0, 0)

    def test_swaps_change_redemption_value(self, dex, encryption, pair_id):
        add_liquidity(dex, encryption, "lp1", 1_000_000, 1_000_000)
        dex.swap_tokens("trader1", TKA, TKB, 10_000, 0)
        result = dex.remove_liquidity("lp1", TKA, TKB, 2_000_000).value
        assert (result.amount_a, result.amount_b) == (1_010_000, 990_030)

    def test_insufficient_shares(self, dex, encryption, pair_id):
        add_liquidity(dex, encryption, "lp1", 100, 100)
        with pytest.raises(InsufficientShares):
            dex.remove_liquidity("lp1", TKA, TKB, 201)
        with pytest.raises(InsufficientShares):
            dex.remove_liquidity("lp2", TKA, TKB, 1)
        assert dex.get_user_liquidity_shares("lp1", pair_id) == 200

    def test_remove_from_unknown_pair(self, dex):
        with pytest.raises(NotFound):
            dex.remove_liquidity("lp1", TKA, "TKZ", 1)

    def test_remove_zero_shares(self, dex, pair_id):
        with pytest.raises(InvalidAmount):
            dex.remove_liquidity("lp1", TKA, TKB, 0)

    def test_remove_allowed_on_inactive_pair(self, dex, encryption, pair_id):
        add_liquidity(dex, encryption, "lp1", 100, 100)
        dex.toggle_pair_status(OWNER, pair_id)
        assert dex.remove_liquidity("lp1", TKA, TKB, 200).value.amount_a == 100


class TestExportState:
    def test_export(self, dex, encryption, pair_id):
        add_liquidity(dex, encryption, "lp1", 10, 10)
        place_order(dex, encryption)
        state = dex.export_state()
        assert state["ledger"] == "dex"
        assert state["order_counter"] == 1
        assert state["pairs"][0]["pair_id"] == pair_id
        assert state["positions"] == [{"provider": "lp1", "pair_id": pair_id, "shares": 20}]
        assert state["orders"][0]["encrypted_amount_in"]["ciphertext"].startswith("0x")
        assert [e["event_type"] for e in state["events"]] == [
            "TradingPairCreated",
            "LiquidityAdded",
            "PrivateOrderCreated",
        ]
