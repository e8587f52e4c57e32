"""Test suite for CryptoVault ledgers."""
