"""
Domain models and value objects.

Contains fundamental ledger entities: Project, ContributionRecord,
TradingPair, Order, LiquidityPosition, EncryptedInput and LedgerEvent.
"""

from src.core.domain.ciphertext import EncryptedInput, to_hex
from src.core.domain.events import EventLog, EventType, LedgerEvent
from src.core.domain.project import ContributionRecord, Project, ProjectStatus
from src.core.domain.trading import (
    LiquidityPosition,
    Order,
    OrderType,
    TradingPair,
    pair_id_for,
)
from src.core.domain.units import (
    BPS_DENOMINATOR,
    NATIVE_ASSET,
    PRICE_SCALE,
    SECONDS_PER_DAY,
    WEI_PER_UNIT,
    bps_to_fraction,
    days_to_seconds,
    format_ether,
    format_units,
    parse_ether,
    parse_units,
    validate_amount,
    validate_bps,
)

__all__ = [
    # Units module
    "PRICE_SCALE",
    "BPS_DENOMINATOR",
    "WEI_PER_UNIT",
    "SECONDS_PER_DAY",
    "NATIVE_ASSET",
    "parse_units",
    "parse_ether",
    "format_units",
    "format_ether",
    "days_to_seconds",
    "bps_to_fraction",
    "validate_amount",
    "validate_bps",
    # Ciphertext
    "EncryptedInput",
    "to_hex",
    # Project model
    "Project",
    "ProjectStatus",
    "ContributionRecord",
    # Trading models
    "TradingPair",
    "Order",
    "OrderType",
    "LiquidityPosition",
    "pair_id_for",
    # Events
    "EventType",
    "LedgerEvent",
    "EventLog",
]
