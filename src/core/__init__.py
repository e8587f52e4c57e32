"""
Core ledger building blocks: domain models, fixed-point math, event contracts,
asset balances and the atomic transaction base.

Nothing here depends on the HTTP layer or on a particular encryption backend.
"""
