"""Validation package."""

from smartfinance.validation.records import (
    decode_account,
    decode_all,
    decode_transaction,
)

__all__ = [
    "decode_account",
    "decode_all",
    "decode_transaction",
]
