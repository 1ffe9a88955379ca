"""
Storage Services Package

Provides the abstract document store interface and its implementations.
Firestore is the remote backend; the in-memory store serves tests and
offline runs.
"""

from smartfinance.services.storage.interface import (
    OWNER_FIELD,
    DocumentStoreInterface,
    NotFoundError,
    RecordDecodeError,
    StoreConnectionError,
    StoreError,
    WriteKind,
    WriteOperation,
)
from smartfinance.services.storage.memory import InMemoryDocumentStore
from smartfinance.services.storage.firestore import (
    FirestoreClient,
    FirestoreDocumentStore,
)

__all__ = [
    # Interfaces
    "DocumentStoreInterface",
    "WriteKind",
    "WriteOperation",
    "OWNER_FIELD",
    # Exceptions
    "NotFoundError",
    "RecordDecodeError",
    "StoreConnectionError",
    "StoreError",
    # Implementations
    "FirestoreClient",
    "FirestoreDocumentStore",
    "InMemoryDocumentStore",
]
