"""Ledger package: backend strategies and the Ledger Store."""

from smartfinance.ledger.backends import (
    ACCOUNTS_COLLECTION,
    TRANSACTIONS_COLLECTION,
    LedgerBackend,
    LocalLedgerBackend,
    RemoteLedgerBackend,
    seed_dataset,
)
from smartfinance.ledger.store import (
    AccountNotFoundError,
    LedgerInactiveError,
    LedgerStore,
)

__all__ = [
    "ACCOUNTS_COLLECTION",
    "TRANSACTIONS_COLLECTION",
    "AccountNotFoundError",
    "LedgerBackend",
    "LedgerInactiveError",
    "LedgerStore",
    "LocalLedgerBackend",
    "RemoteLedgerBackend",
    "seed_dataset",
]
