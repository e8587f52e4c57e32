"""HTTP API над ledgers CryptoVault."""

from src.api.app import ApiSettings, AppState, create_app

__all__ = [
    "ApiSettings",
    "AppState",
    "create_app",
]
