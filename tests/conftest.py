"""Общие fixtures: ledgers на ManualClock и засеянный AssetLedger."""

import pytest

from src.core.clock import ManualClock
from src.core.domain.units import NATIVE_ASSET, parse_ether
from src.core.encryption import MockEncryptionProvider
from src.core.transfers import AssetLedger
from src.dex.order_book import ConfidentialOrderBook
from src.vault.funding_ledger import FundingLedger


OWNER = "owner"
TOKEN_A = "TKA"
TOKEN_B = "TKB"

START_TS = 1_700_000_000
TOKEN_SUPPLY = 10**24


@pytest.fixture
def clock():
    return ManualClock(start=START_TS)


@pytest.fixture
def assets():
    """AssetLedger: 100 ETH у пользователей vault, по 10^24 TKA/TKB у трейдеров и LP."""
    ledger = AssetLedger()
    for account in ("alice", "bob", "carol", "dave"):
        ledger.mint(NATIVE_ASSET, account, parse_ether("100"))
    for account in ("trader1", "trader2", "lp1", "lp2"):
        ledger.mint(TOKEN_A, account, TOKEN_SUPPLY)
        ledger.mint(TOKEN_B, account, TOKEN_SUPPLY)
    return ledger


@pytest.fixture
def encryption():
    return MockEncryptionProvider()


@pytest.fixture
def vault(assets, clock):
    return FundingLedger(owner=OWNER, assets=assets, clock=clock)


@pytest.fixture
def dex(assets, clock):
    return ConfidentialOrderBook(owner=OWNER, assets=assets, clock=clock)


@pytest.fixture
def pair_id(dex):
    """Пара TKA/TKB с комиссией 30 bps и ценой 1:1."""
    return dex.create_trading_pair(OWNER, TOKEN_A, TOKEN_B, 30).value
