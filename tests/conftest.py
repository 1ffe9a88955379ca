"""Shared fakes and fixtures. Nothing here touches the network."""

from datetime import date
from typing import Optional

import pytest

from smartfinance.audit import AuditLogger
from smartfinance.config import LedgerSettings
from smartfinance.ledger import LedgerStore
from smartfinance.models.ledger import Identity, IdentityMode
from smartfinance.services.auth import AuthError, AuthProviderInterface
from smartfinance.services.storage import InMemoryDocumentStore, StoreConnectionError


TODAY = date(2024, 10, 15)


class FakeAuthProvider(AuthProviderInterface):
    """Email/password provider backed by a dict of known users."""

    def __init__(self, users: Optional[dict[str, str]] = None, session: Optional[Identity] = None):
        self.users = dict(users or {})
        self.sign_out_calls = 0
        self._current = session
        self._listeners = []

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._current)

    @staticmethod
    def _uid(email: str) -> str:
        return "uid-" + email.split("@")[0]

    async def sign_in(self, email: str, password: str) -> Identity:
        if self.users.get(email) != password:
            raise AuthError("Incorrect email or password.", code="INVALID_LOGIN_CREDENTIALS")
        self._current = Identity(uid=self._uid(email), email=email, mode=IdentityMode.AUTHENTICATED)
        self._notify()
        return self._current

    async def sign_up(self, email: str, password: str) -> Identity:
        if email in self.users:
            raise AuthError("That email is already registered.", code="EMAIL_EXISTS")
        self.users[email] = password
        return await self.sign_in(email, password)

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self._current is not None:
            self._current = None
            self._notify()

    def subscribe(self, listener):
        self._listeners.append(listener)
        listener(self._current)
        return lambda: self._listeners.remove(listener)


class FailingDocumentStore(InMemoryDocumentStore):
    """In-memory store whose writes fail once `fail_writes` is set."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def _check(self) -> None:
        if self.fail_writes:
            raise StoreConnectionError("Firestore unavailable")

    async def insert(self, collection, owner_id, record, document_id=None):
        self._check()
        return await super().insert(collection, owner_id, record, document_id=document_id)

    async def delete(self, collection, document_id):
        self._check()
        await super().delete(collection, document_id)

    async def apply(self, owner_id, operations):
        self._check()
        await super().apply(owner_id, operations)


class FakeResponse:
    def __init__(self, text: str = "", candidates=None):
        self._text = text
        self.candidates = candidates or []

    @property
    def text(self) -> str:
        if self._text is None:
            raise ValueError("Response has no text")
        return self._text


class FakeGeminiModel:
    """Stands in for genai.GenerativeModel; replays queued answers."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        if isinstance(answer, FakeResponse):
            return answer
        return FakeResponse(answer)


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def document_store():
    return FailingDocumentStore()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(transaction_page_size=50, reject_unknown_account=False)


@pytest.fixture
def ledger(ledger_settings, document_store, audit_logger):
    store = LedgerStore(
        settings=ledger_settings,
        document_store=document_store,
        audit_logger=audit_logger,
        clock=lambda: TODAY,
    )
    yield store
    store.close()
