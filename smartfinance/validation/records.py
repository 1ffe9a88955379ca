"""
Record Decoding at the Store Boundary

DESIGN DECISION: Records coming back from the document store are plain
dicts. They are decoded into typed models HERE, before anything else sees
them, and decoding fails closed:

- a missing required field is an error, never a silent default
- an invalid value (negative amount, unknown type) is an error
- one bad record rejects the whole delivery

The caller keeps its previous snapshot when a delivery is rejected.
"""

from typing import Callable, TypeVar

from pydantic import BaseModel, ValidationError

from smartfinance.models.ledger import Account, Transaction
from smartfinance.services.storage.interface import Record, RecordDecodeError


ModelT = TypeVar("ModelT", bound=BaseModel)


def _describe(error: ValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "record"
        parts.append(f"{location}: {issue['msg']}")
    return "; ".join(parts)


def _decode(model: type[ModelT], record: Record) -> ModelT:
    record_id = record.get("id")
    try:
        return model.model_validate(record)
    except ValidationError as e:
        raise RecordDecodeError(
            f"Malformed {model.__name__.lower()} record {record_id!r}: {_describe(e)}",
            record_id=record_id,
        ) from e


def decode_account(record: Record) -> Account:
    """Decode one `accounts` record."""
    return _decode(Account, record)


def decode_transaction(record: Record) -> Transaction:
    """Decode one `transactions` record."""
    return _decode(Transaction, record)


def decode_all(
    decoder: Callable[[Record], ModelT],
    records: list[Record],
) -> tuple[ModelT, ...]:
    """
    Decode a full live-query delivery.

    Raises:
        RecordDecodeError: On the first malformed record
    """
    return tuple(decoder(record) for record in records)
