"""
In-Memory Document Store

Implements the document store interface on plain dicts. Live queries are
re-evaluated and delivered synchronously after every write, which makes
it a faithful stand-in for Firestore in tests and offline runs.

Not thread-safe; use it from a single event loop.
"""

import copy
import itertools
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

import structlog

from smartfinance.models.ledger import new_record_id
from smartfinance.services.storage.interface import (
    OWNER_FIELD,
    DocumentStoreInterface,
    ErrorListener,
    NotFoundError,
    Record,
    SnapshotListener,
    StoreError,
    Unsubscribe,
    WriteKind,
    WriteOperation,
)


logger = structlog.get_logger(__name__)


@dataclass
class _LiveQuery:
    collection: str
    owner_id: str
    listener: SnapshotListener
    order_by: Optional[str]
    descending: bool
    limit: Optional[int]
    active: bool = True


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Dict-backed document store.

    Records are kept per collection as {document_id: record}; an insertion
    counter breaks ordering ties so the newest record sorts first when
    ordering descending.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, Record]] = defaultdict(dict)
        self._sequence: dict[tuple[str, str], int] = {}
        self._counter = itertools.count()
        self._queries: list[_LiveQuery] = []

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def records(self, collection: str) -> list[Record]:
        """All records in a collection regardless of owner (inspection helper)."""
        return [
            {**copy.deepcopy(record), "id": doc_id}
            for doc_id, record in self._collections[collection].items()
        ]

    def get(self, collection: str, document_id: str) -> Optional[Record]:
        record = self._collections[collection].get(document_id)
        if record is None:
            return None
        return {**copy.deepcopy(record), "id": document_id}

    def _evaluate(self, query: _LiveQuery) -> list[Record]:
        matches = [
            (doc_id, record)
            for doc_id, record in self._collections[query.collection].items()
            if record.get(OWNER_FIELD) == query.owner_id
        ]

        if query.order_by:
            matches.sort(
                key=lambda item: (
                    str(item[1].get(query.order_by, "")),
                    self._sequence[(query.collection, item[0])],
                ),
                reverse=query.descending,
            )

        if query.limit is not None:
            matches = matches[: query.limit]

        return [{**copy.deepcopy(record), "id": doc_id} for doc_id, record in matches]

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
        query = _LiveQuery(
            collection=collection,
            owner_id=owner_id,
            listener=on_snapshot,
            order_by=order_by,
            descending=descending,
            limit=limit,
        )
        self._queries.append(query)
        on_snapshot(self._evaluate(query))

        def unsubscribe() -> None:
            query.active = False
            if query in self._queries:
                self._queries.remove(query)

        return unsubscribe

    @property
    def active_query_count(self) -> int:
        return len(self._queries)

    def _notify(self, collections: set[str]) -> None:
        for query in list(self._queries):
            if query.active and query.collection in collections:
                query.listener(self._evaluate(query))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _put(self, collection: str, document_id: str, record: Record) -> None:
        self._collections[collection][document_id] = record
        key = (collection, document_id)
        if key not in self._sequence:
            self._sequence[key] = next(self._counter)

    async def insert(
        self,
        collection: str,
        owner_id: str,
        record: Record,
        document_id: Optional[str] = None,
    ) -> str:
        document_id = document_id or new_record_id()
        stored = {k: v for k, v in copy.deepcopy(record).items() if k != "id"}
        stored[OWNER_FIELD] = owner_id
        self._put(collection, document_id, stored)
        self._notify({collection})
        return document_id

    async def update(self, collection: str, document_id: str, fields: Record) -> None:
        existing = self._collections[collection].get(document_id)
        if existing is None:
            raise NotFoundError(f"{collection}/{document_id} does not exist")
        existing.update(copy.deepcopy(fields))
        self._notify({collection})

    async def delete(self, collection: str, document_id: str) -> None:
        self._collections[collection].pop(document_id, None)
        self._sequence.pop((collection, document_id), None)
        self._notify({collection})

    async def apply(self, owner_id: str, operations: list[WriteOperation]) -> None:
        # Stage every change on a copy so a failing operation leaves nothing applied
        staged = {
            op.collection: copy.deepcopy(self._collections[op.collection])
            for op in operations
        }

        for op in operations:
            target = staged[op.collection]
            if op.kind == WriteKind.INSERT:
                record = {k: v for k, v in copy.deepcopy(op.data).items() if k != "id"}
                record[OWNER_FIELD] = owner_id
                target[op.document_id] = record
            elif op.kind == WriteKind.DELETE:
                target.pop(op.document_id, None)
            elif op.document_id not in target:
                raise NotFoundError(f"{op.collection}/{op.document_id} does not exist")
            elif op.kind == WriteKind.UPDATE:
                target[op.document_id].update(copy.deepcopy(op.data))
            else:
                current = target[op.document_id].get(op.field_name, 0)
                if not isinstance(current, (int, float)):
                    raise StoreError(
                        f"Cannot increment non-numeric field {op.field_name!r}",
                        retryable=False,
                    )
                target[op.document_id][op.field_name] = current + op.amount

        for collection, records in staged.items():
            for doc_id in list(self._collections[collection]):
                if doc_id not in records:
                    self._sequence.pop((collection, doc_id), None)
            self._collections[collection] = {}
            for doc_id, record in records.items():
                self._put(collection, doc_id, record)

        logger.debug("batch_applied", owner_id=owner_id, operations=len(operations))
        self._notify(set(staged))
