"""
Cloud Firestore Storage Implementation

DESIGN DECISION: Firestore is the remote backend because:
1. Live queries push the full result set whenever data changes
2. Batched writes give us atomic multi-record updates
3. Server-side increments avoid read-modify-write races on balances

Layout:
- accounts/{id}:     name, balance, color, createdAt, userId
- transactions/{id}: accountId, amount, type, category, note, date, userId

Every record is tagged with its owner's uid and every query filters on it.
The SDK is synchronous; blocking calls run in a worker thread, and live
query callbacks arrive on SDK threads (the caller marshals them).
"""

import asyncio
import threading
from datetime import datetime, timezone
from typing import Optional

import firebase_admin
import structlog
from firebase_admin import credentials, firestore
from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore import FieldFilter, Increment, Query
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from smartfinance.config import FirebaseSettings
from smartfinance.models.ledger import new_record_id
from smartfinance.services.storage.interface import (
    OWNER_FIELD,
    DocumentStoreInterface,
    ErrorListener,
    NotFoundError,
    Record,
    SnapshotListener,
    StoreConnectionError,
    StoreError,
    Unsubscribe,
    WriteKind,
    WriteOperation,
)


logger = structlog.get_logger(__name__)

APP_NAME = "smartfinance"

_TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.TooManyRequests,
)


def _translate(exc: Exception, operation: str) -> StoreError:
    """Map SDK exceptions onto the store's error taxonomy."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, gcp_exceptions.NotFound):
        return NotFoundError(f"{operation}: {exc}")
    if isinstance(exc, _TRANSIENT_ERRORS):
        return StoreConnectionError(f"{operation}: {exc}")
    return StoreError(f"{operation} failed: {exc}", retryable=False)


_write_retry = retry(
    retry=retry_if_exception(lambda e: isinstance(e, StoreError) and e.retryable),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Initializes a named firebase-admin app on first use.
    """

    def __init__(self, settings: FirebaseSettings):
        self._settings = settings
        self._client = None
        self._lock = threading.Lock()

    def connect(self):
        """
        Establish connection to Firestore.

        Uses the service account file when configured, otherwise
        application default credentials.
        """
        with self._lock:
            if self._client is not None:
                return self._client
            try:
                try:
                    app = firebase_admin.get_app(APP_NAME)
                except ValueError:
                    if self._settings.credentials_path:
                        cred = credentials.Certificate(self._settings.credentials_path)
                    else:
                        cred = credentials.ApplicationDefault()
                    options = {}
                    if self._settings.project_id:
                        options["projectId"] = self._settings.project_id
                    app = firebase_admin.initialize_app(cred, options, name=APP_NAME)
                self._client = firestore.client(app)
            except FileNotFoundError:
                raise StoreConnectionError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}",
                    retryable=False,
                )
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Firestore: {e}", retryable=False)
            logger.info("firestore_connected", project_id=self._settings.project_id)
            return self._client


class _ActiveWatch:
    """A live query handed out by FirestoreDocumentStore.watch."""

    def __init__(self, collection: str, live_query, on_error: Optional[ErrorListener]):
        self.collection = collection
        self.live_query = live_query
        self.on_error = on_error

    @property
    def stopped(self) -> bool:
        return not getattr(self.live_query, "is_active", True)


class FirestoreDocumentStore(DocumentStoreInterface):
    """
    Firestore implementation of the document store interface.

    The SDK ends a live query on a stream error (a missing composite index,
    revoked permissions) without calling the snapshot callback. Such queries
    are detected after every write and reported once through their on_error
    listener as StoreConnectionError.
    """

    def __init__(self, client: FirestoreClient):
        self._client = client
        self._watches: list[_ActiveWatch] = []
        self._watches_lock = threading.Lock()

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
        db = self._client.connect()
        query = db.collection(collection).where(
            filter=FieldFilter(OWNER_FIELD, "==", owner_id)
        )
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)

        def callback(docs, changes, read_time):
            try:
                on_snapshot([{**(doc.to_dict() or {}), "id": doc.id} for doc in docs])
            except Exception as e:
                logger.error("live_query_listener_failed", collection=collection, error=str(e))
                if on_error is not None:
                    on_error(e)

        try:
            live_query = query.on_snapshot(callback)
        except Exception as e:
            raise _translate(e, f"watch {collection}")

        active = _ActiveWatch(collection, live_query, on_error)
        with self._watches_lock:
            self._watches.append(active)

        def unsubscribe() -> None:
            with self._watches_lock:
                if active in self._watches:
                    self._watches.remove(active)
            live_query.unsubscribe()

        logger.debug("live_query_started", collection=collection, owner_id=owner_id)
        return unsubscribe

    def check_watches(self) -> int:
        """
        Report live queries the SDK has closed on its own.

        Each stopped query is dropped and its on_error listener called once.

        Returns:
            Number of stopped queries found
        """
        with self._watches_lock:
            stopped = [w for w in self._watches if w.stopped]
            for watch in stopped:
                self._watches.remove(watch)

        for watch in stopped:
            logger.error("live_query_stopped", collection=watch.collection)
            if watch.on_error is not None:
                watch.on_error(
                    StoreConnectionError(f"Live query on {watch.collection} stopped", retryable=False)
                )
        return len(stopped)

    @_write_retry
    def _set(self, collection: str, document_id: str, record: Record) -> None:
        db = self._client.connect()
        try:
            db.collection(collection).document(document_id).set(record)
        except Exception as e:
            raise _translate(e, f"insert {collection}/{document_id}")

    @_write_retry
    def _update(self, collection: str, document_id: str, fields: Record) -> None:
        db = self._client.connect()
        try:
            db.collection(collection).document(document_id).update(fields)
        except Exception as e:
            raise _translate(e, f"update {collection}/{document_id}")

    @_write_retry
    def _delete(self, collection: str, document_id: str) -> None:
        db = self._client.connect()
        try:
            db.collection(collection).document(document_id).delete()
        except Exception as e:
            raise _translate(e, f"delete {collection}/{document_id}")

    @_write_retry
    def _commit(self, owner_id: str, operations: list[WriteOperation]) -> None:
        db = self._client.connect()
        batch = db.batch()
        for op in operations:
            ref = db.collection(op.collection).document(op.document_id)
            if op.kind == WriteKind.INSERT:
                # create() fails if the record exists, so a replayed batch cannot
                # apply its increments twice
                batch.create(ref, self._tag(op.data, owner_id))
            elif op.kind == WriteKind.UPDATE:
                batch.update(ref, op.data)
            elif op.kind == WriteKind.DELETE:
                batch.delete(ref)
            else:
                batch.update(ref, {op.field_name: Increment(op.amount)})
        try:
            batch.commit()
        except gcp_exceptions.AlreadyExists as e:
            if not any(op.kind == WriteKind.INSERT for op in operations):
                raise _translate(e, "batch commit")
            # Inserted ids are fresh, so an earlier attempt already committed
            logger.info("batch_already_committed", owner_id=owner_id, error=str(e))
        except Exception as e:
            error = _translate(e, "batch commit")
            if not any(op.kind == WriteKind.INSERT for op in operations) and any(
                op.kind == WriteKind.INCREMENT for op in operations
            ):
                # Nothing marks such a batch as applied; replaying it could double-count
                error.retryable = False
            raise error

    @staticmethod
    def _tag(record: Record, owner_id: str) -> Record:
        stored = {k: v for k, v in record.items() if k != "id"}
        stored[OWNER_FIELD] = owner_id
        stored.setdefault("createdAt", datetime.now(timezone.utc).isoformat())
        return stored

    async def insert(
        self,
        collection: str,
        owner_id: str,
        record: Record,
        document_id: Optional[str] = None,
    ) -> str:
        document_id = document_id or new_record_id()
        try:
            await asyncio.to_thread(self._set, collection, document_id, self._tag(record, owner_id))
        finally:
            self.check_watches()
        return document_id

    async def update(self, collection: str, document_id: str, fields: Record) -> None:
        try:
            await asyncio.to_thread(self._update, collection, document_id, fields)
        finally:
            self.check_watches()

    async def delete(self, collection: str, document_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete, collection, document_id)
        finally:
            self.check_watches()

    async def apply(self, owner_id: str, operations: list[WriteOperation]) -> None:
        try:
            await asyncio.to_thread(self._commit, owner_id, operations)
        finally:
            self.check_watches()
