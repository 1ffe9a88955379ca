"""Tests for the Firestore document store against a fake SDK client."""

import pytest
from google.api_core import exceptions as gcp_exceptions
from tenacity import wait_none

from smartfinance.services.storage import (
    FirestoreDocumentStore,
    StoreConnectionError,
    StoreError,
    WriteOperation,
)


class FakeRef:
    def __init__(self, db, collection, document_id):
        self.db = db
        self.key = (collection, document_id)

    def set(self, data):
        self.db.docs[self.key] = dict(data)

    def update(self, fields):
        if self.key not in self.db.docs:
            raise gcp_exceptions.NotFound(f"{self.key} missing")
        self.db.apply_update(self.key, fields)

    def delete(self):
        self.db.docs.pop(self.key, None)


class FakeBatch:
    """Applies its writes atomically and can fail after applying them."""

    def __init__(self, db):
        self.db = db
        self.writes = []

    def create(self, ref, data):
        self.writes.append(("create", ref.key, data))

    def update(self, ref, data):
        self.writes.append(("update", ref.key, data))

    def delete(self, ref):
        self.writes.append(("delete", ref.key, None))

    def commit(self):
        self.db.commits += 1
        for kind, key, _ in self.writes:
            if kind == "create" and key in self.db.docs:
                raise gcp_exceptions.AlreadyExists(f"{key} exists")
        if self.db.fail_before_apply:
            self.db.fail_before_apply -= 1
            raise gcp_exceptions.DeadlineExceeded("commit timed out")
        for kind, key, data in self.writes:
            if kind == "create":
                self.db.docs[key] = dict(data)
            elif kind == "update":
                self.db.apply_update(key, data)
            else:
                self.db.docs.pop(key, None)
        if self.db.fail_after_apply:
            self.db.fail_after_apply -= 1
            raise gcp_exceptions.DeadlineExceeded("response lost")


class FakeWatch:
    def __init__(self):
        self.is_active = True
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True
        self.is_active = False


class FakeQuery:
    def __init__(self, db):
        self.db = db

    def where(self, filter=None):
        return self

    def order_by(self, field, direction=None):
        return self

    def limit(self, count):
        return self

    def on_snapshot(self, callback):
        watch = FakeWatch()
        self.db.live_queries.append(watch)
        return watch


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db)
        self.name = name

    def document(self, document_id):
        return FakeRef(self.db, self.name, document_id)


class FakeDb:
    def __init__(self):
        self.docs = {}
        self.commits = 0
        self.fail_before_apply = 0
        self.fail_after_apply = 0
        self.live_queries = []

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch(self)

    def apply_update(self, key, fields):
        doc = self.docs[key]
        for field, value in fields.items():
            if hasattr(value, "value"):
                doc[field] = doc.get(field, 0) + value.value
            else:
                doc[field] = value


class FakeClient:
    def __init__(self, db):
        self.db = db

    def connect(self):
        return self.db


@pytest.fixture
def db():
    fake = FakeDb()
    fake.docs[("accounts", "a1")] = {"name": "Main Cash", "balance": 100, "userId": "u1"}
    return fake


@pytest.fixture
def store(db, monkeypatch):
    for method in ("_commit", "_set", "_update", "_delete"):
        monkeypatch.setattr(getattr(FirestoreDocumentStore, method).retry, "wait", wait_none())
    return FirestoreDocumentStore(FakeClient(db))


def _expense(amount):
    return [
        WriteOperation.insert(
            "transactions",
            "t1",
            {"accountId": "a1", "amount": amount, "type": "EXPENSE", "category": "Food"},
        ),
        WriteOperation.increment("accounts", "a1", "balance", -amount),
    ]


class TestBatchCommit:
    """Atomic batches and their retry behaviour."""

    @pytest.mark.asyncio
    async def test_expense_batch(self, store, db):
        """Test that a batch inserts the transaction and moves the balance."""
        await store.apply("u1", _expense(120))

        assert db.docs[("accounts", "a1")]["balance"] == -20
        assert db.docs[("transactions", "t1")]["userId"] == "u1"
        assert db.commits == 1

    @pytest.mark.asyncio
    async def test_lost_response_does_not_double_apply(self, store, db):
        """Test that a batch committed before a timeout is not applied again on retry."""
        db.fail_after_apply = 1

        await store.apply("u1", _expense(120))

        assert db.docs[("accounts", "a1")]["balance"] == -20
        assert db.commits == 2

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, store, db):
        """Test that a batch rejected before applying is retried and lands once."""
        db.fail_before_apply = 1

        await store.apply("u1", _expense(120))

        assert db.docs[("accounts", "a1")]["balance"] == -20
        assert db.commits == 2

    @pytest.mark.asyncio
    async def test_increment_only_batch_not_retried(self, store, db):
        """Test that a batch with nothing to mark it applied fails without a replay."""
        db.fail_after_apply = 1

        with pytest.raises(StoreConnectionError) as exc_info:
            await store.apply("u1", [WriteOperation.increment("accounts", "a1", "balance", 50)])

        assert not exc_info.value.retryable
        assert db.commits == 1
        assert db.docs[("accounts", "a1")]["balance"] == 150

    @pytest.mark.asyncio
    async def test_existing_record_without_inserts_is_an_error(self, store, db, monkeypatch):
        """Test that AlreadyExists is only swallowed for batches that insert."""

        def reject(batch):
            db.commits += 1
            raise gcp_exceptions.AlreadyExists("conflict")

        monkeypatch.setattr(FakeBatch, "commit", reject)

        with pytest.raises(StoreError):
            await store.apply("u1", [WriteOperation.increment("accounts", "a1", "balance", 5)])
        assert db.commits == 1


class TestLiveQueryFailures:
    """Live queries closed by the SDK are reported through on_error."""

    @pytest.mark.asyncio
    async def test_stopped_query_reported_once(self, store, db):
        """Test that a query the SDK closed is reported after the next write."""
        errors = []
        store.watch("accounts", "u1", on_snapshot=lambda docs: None, on_error=errors.append)
        db.live_queries[0].is_active = False

        await store.update("accounts", "a1", {"name": "Wallet"})
        await store.update("accounts", "a1", {"name": "Pocket"})

        assert len(errors) == 1
        assert isinstance(errors[0], StoreConnectionError)
        assert "accounts" in str(errors[0])

    @pytest.mark.asyncio
    async def test_reported_after_failed_write(self, store, db):
        """Test that the check also runs when the write itself fails."""
        errors = []
        store.watch("accounts", "u1", on_snapshot=lambda docs: None, on_error=errors.append)
        db.live_queries[0].is_active = False

        with pytest.raises(StoreError):
            await store.update("accounts", "missing", {"name": "Ghost"})

        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_unsubscribed_query_not_reported(self, store, db):
        """Test that a query closed by the caller is not an error."""
        errors = []
        unsubscribe = store.watch(
            "accounts", "u1", on_snapshot=lambda docs: None, on_error=errors.append
        )
        unsubscribe()

        await store.update("accounts", "a1", {"name": "Wallet"})

        assert errors == []
        assert db.live_queries[0].unsubscribed
        assert store.check_watches() == 0
