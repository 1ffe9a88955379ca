"""Services package."""

from smartfinance.services.auth import (
    AuthError,
    AuthProviderInterface,
    FirebaseAuthProvider,
)
from smartfinance.services.storage import (
    DocumentStoreInterface,
    FirestoreClient,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    RecordDecodeError,
    StoreConnectionError,
    StoreError,
    WriteOperation,
)

__all__ = [
    # Auth services
    "AuthError",
    "AuthProviderInterface",
    "FirebaseAuthProvider",
    # Storage services
    "DocumentStoreInterface",
    "FirestoreClient",
    "FirestoreDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "RecordDecodeError",
    "StoreConnectionError",
    "StoreError",
    "WriteOperation",
]
