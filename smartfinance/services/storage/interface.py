"""
Abstract Document Store Interface

DESIGN DECISION: We define an abstract interface for the remote store.
This allows us to:
1. Run the ledger against Firestore in production
2. Use in-memory storage for testing and offline work
3. Keep the ledger logic decoupled from any SDK

The interface is intentionally small - live queries plus a handful of
writes. Records are plain dicts tagged with their owner's identifier;
turning them into typed models is the caller's job (see
smartfinance.validation).
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field


OWNER_FIELD = "userId"

Record = dict[str, Any]
SnapshotListener = Callable[[list[Record]], None]
ErrorListener = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class WriteKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    INCREMENT = "increment"


class WriteOperation(BaseModel):
    """
    One write inside an atomic batch.

    INCREMENT adds `amount` to the numeric `field_name` of an existing record.
    """

    kind: WriteKind
    collection: str = Field(..., min_length=1)
    document_id: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    field_name: Optional[str] = None
    amount: float = 0.0

    @classmethod
    def insert(cls, collection: str, document_id: str, record: Record) -> "WriteOperation":
        return cls(
            kind=WriteKind.INSERT,
            collection=collection,
            document_id=document_id,
            data=record,
        )

    @classmethod
    def increment(
        cls,
        collection: str,
        document_id: str,
        field: str,
        amount: float,
    ) -> "WriteOperation":
        return cls(
            kind=WriteKind.INCREMENT,
            collection=collection,
            document_id=document_id,
            field_name=field,
            amount=amount,
        )


class DocumentStoreInterface(ABC):
    """
    Abstract interface for a reactive, owner-partitioned document store.

    Any storage implementation (Firestore, in-memory, ...) must implement
    these methods.
    """

    @abstractmethod
    def watch(
        self,
        collection: str,
        owner_id: str,
        on_snapshot: SnapshotListener,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        on_error: Optional[ErrorListener] = None,
    ) -> Unsubscribe:
        """
        Start a live query over one owner's records.

        `on_snapshot` receives the full result set (each record includes
        its `id`) once at start and again after every change. Listeners
        may be called from a thread other than the caller's.

        Returns:
            A callable that stops the live query
        """
        pass

    @abstractmethod
    async def insert(
        self,
        collection: str,
        owner_id: str,
        record: Record,
        document_id: Optional[str] = None,
    ) -> str:
        """
        Insert a record tagged with its owner.

        Returns:
            The record's identifier

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, collection: str, document_id: str, fields: Record) -> None:
        """
        Merge fields into an existing record.

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> None:
        """
        Delete a record. Deleting a missing record is not an error.

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def apply(self, owner_id: str, operations: list[WriteOperation]) -> None:
        """
        Apply several writes atomically: all of them or none.

        Inserted records are tagged with `owner_id`.

        Raises:
            NotFoundError: If an update/increment targets a missing record
            StoreError: If the batch fails
        """
        pass


class StoreError(Exception):
    """Base exception for document store operations."""

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class NotFoundError(StoreError):
    """Record not found in storage."""

    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class StoreConnectionError(StoreError):
    """Could not connect to the storage backend."""
    pass


class RecordDecodeError(StoreError):
    """A stored record is missing required fields or holds invalid values."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        self.record_id = record_id
        super().__init__(message, retryable=False)
