"""
Ledger Store

Owns the account and transaction collections for the current identity.

FLOW:
1. The Session Manager reports an identity change
2. The store tears down the previous backend's feeds FIRST
3. It selects exactly one backend (remote or local) for the new identity
4. Every delivery from that backend replaces the matching collection

Deliveries carry the generation number of the subscription they belong
to; anything from an older generation is dropped, so a slow feed from a
previous identity can never write into the current view.

Mutations go through the backend. In remote mode the snapshot changes
only when the live query pushes the result back ("last full snapshot
wins"); in local mode the backend pushes synchronously.
"""

import inspect
from datetime import date
from typing import Awaitable, Callable, Optional, Union

import structlog

from smartfinance.audit import AuditLogger
from smartfinance.config import LedgerSettings
from smartfinance.ledger.backends import (
    LedgerBackend,
    LocalLedgerBackend,
    RemoteLedgerBackend,
)
from smartfinance.models.ledger import (
    ACCOUNT_COLORS,
    Account,
    Identity,
    LedgerMode,
    LedgerSnapshot,
    Transaction,
    TransactionType,
)
from smartfinance.services.storage import (
    DocumentStoreInterface,
    NotFoundError,
    StoreError,
)


logger = structlog.get_logger(__name__)

SnapshotListener = Callable[[LedgerSnapshot], None]
Confirmation = Callable[[Account], Union[bool, Awaitable[bool]]]


class LedgerInactiveError(StoreError):
    """A mutation was requested while no identity is active."""

    def __init__(self):
        super().__init__("Sign in or enter demo mode first.", retryable=False)


class AccountNotFoundError(NotFoundError):
    """The referenced account is not in the current snapshot."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class LedgerStore:
    """
    Canonical ledger state for the current identity.

    Consumers read `snapshot` (immutable) or subscribe to it, and change
    it only through add_account / delete_account / add_transaction.
    """

    def __init__(
        self,
        settings: Optional[LedgerSettings] = None,
        document_store: Optional[DocumentStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._settings = settings or LedgerSettings()
        self._document_store = document_store
        self._audit = audit_logger or AuditLogger()
        self._clock = clock

        self._identity: Optional[Identity] = None
        self._snapshot = LedgerSnapshot()
        self._backend: Optional[LedgerBackend] = None
        self._backend_unsubscribe: Optional[Callable[[], None]] = None
        self._generation = 0
        self._listeners: list[SnapshotListener] = []
        self._session_unsubscribe: Optional[Callable[[], None]] = None

        self.last_error: Optional[StoreError] = None

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    def bind(self, session) -> None:
        """Follow a SessionManager's identity feed."""
        self.unbind()
        self._session_unsubscribe = session.subscribe(self.switch_identity)

    def unbind(self) -> None:
        if self._session_unsubscribe is not None:
            self._session_unsubscribe()
            self._session_unsubscribe = None

    def close(self) -> None:
        self.unbind()
        self._teardown()

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def mode(self) -> LedgerMode:
        return self._snapshot.mode

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call `listener` with the snapshot now and after every change."""
        self._listeners.append(listener)
        listener(self._snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, snapshot: LedgerSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    # -------------------------------------------------------------------------
    # Mode selection
    # -------------------------------------------------------------------------

    def _teardown(self) -> None:
        self._generation += 1
        if self._backend_unsubscribe is not None:
            self._backend_unsubscribe()
            self._backend_unsubscribe = None
        self._backend = None

    def _local_backend(self) -> LocalLedgerBackend:
        return LocalLedgerBackend(
            page_size=self._settings.transaction_page_size,
            today=self._clock(),
        )

    def _select_backend(self, identity: Optional[Identity]) -> Optional[LedgerBackend]:
        if identity is None:
            return None
        if identity.is_guest or self._document_store is None:
            return self._local_backend()
        return RemoteLedgerBackend(
            self._document_store,
            owner_id=identity.uid,
            page_size=self._settings.transaction_page_size,
        )

    def switch_identity(self, identity: Optional[Identity]) -> None:
        """Drop the previous identity's feeds and load the new identity's ledger."""
        self._teardown()
        self._identity = identity
        self.last_error = None

        backend = self._select_backend(identity)
        owner_id = identity.uid if identity else None

        if backend is not None:
            try:
                unsubscribe = self._attach(backend, owner_id)
            except StoreError as e:
                logger.warning("remote_ledger_unavailable", owner_id=owner_id, error=str(e))
                self._record_error("subscribe", e)
                backend = self._local_backend()
                unsubscribe = self._attach(backend, owner_id)
            self._backend = backend
            self._backend_unsubscribe = unsubscribe
        else:
            self._publish(LedgerSnapshot())

        mode = backend.mode if backend else LedgerMode.INACTIVE
        logger.info("ledger_mode_selected", owner_id=owner_id, mode=mode.value)
        self._audit.log_ledger_mode_selected(owner_id, mode.value)

    def _attach(self, backend: LedgerBackend, owner_id: Optional[str]) -> Callable[[], None]:
        generation = self._generation
        self._publish(LedgerSnapshot(mode=backend.mode, owner_id=owner_id))

        def on_accounts(accounts: tuple[Account, ...]) -> None:
            if generation != self._generation:
                return
            self._publish(self._snapshot.model_copy(update={"accounts": accounts}))

        def on_transactions(transactions: tuple[Transaction, ...]) -> None:
            if generation != self._generation:
                return
            self._publish(self._snapshot.model_copy(update={"transactions": transactions}))

        def on_error(error: StoreError) -> None:
            if generation != self._generation:
                return
            logger.error("ledger_feed_rejected", owner_id=owner_id, error=str(error))
            self._record_error("live_query", error)

        return backend.subscribe(on_accounts, on_transactions, on_error)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _active(self) -> tuple[LedgerBackend, Identity]:
        if self._backend is None or self._identity is None:
            raise LedgerInactiveError()
        return self._backend, self._identity

    def _record_error(self, operation: str, error: StoreError) -> None:
        self.last_error = error
        owner_id = self._identity.uid if self._identity else None
        self._audit.log_store_error(owner_id, operation, str(error))

    async def _write(self, operation: str, pending: Awaitable[None]) -> None:
        """Run a backend write; on failure keep the snapshot and surface StoreError."""
        try:
            await pending
        except StoreError as e:
            logger.error("ledger_write_failed", operation=operation, error=str(e))
            self._record_error(operation, e)
            raise
        self.last_error = None

    async def add_account(
        self,
        name: str,
        initial_balance: float,
        color: str = ACCOUNT_COLORS[0],
    ) -> Account:
        """
        Create an account with a fresh identifier.

        Negative initial balances are allowed.

        Raises:
            pydantic.ValidationError: Empty name or non-numeric balance
            StoreError: If the remote write fails
        """
        backend, identity = self._active()
        account = Account(name=name, balance=initial_balance, color=color)

        await self._write("add_account", backend.add_account(account))

        self._audit.log_account_created(identity.uid, account.id, account.name, account.balance)
        return account

    async def delete_account(self, account_id: str, confirm: Confirmation) -> bool:
        """
        Delete an account after the user confirms.

        `confirm` receives the account and returns (or resolves to) a bool.
        Transactions referencing the account are left untouched.

        Returns:
            True if deleted, False if the user declined

        Raises:
            AccountNotFoundError: If the account is not in the snapshot
            StoreError: If the remote write fails
        """
        backend, identity = self._active()
        account = self._snapshot.find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        decision = confirm(account)
        if inspect.isawaitable(decision):
            decision = await decision
        if not decision:
            self._audit.log_account_delete_declined(identity.uid, account_id)
            return False

        await self._write("delete_account", backend.delete_account(account_id))

        self._audit.log_account_deleted(identity.uid, account_id, account.name)
        return True

    async def add_transaction(
        self,
        account_id: str,
        amount: float,
        tx_type: Union[TransactionType, str],
        category: str = "Other",
        note: str = "",
        on_date: Optional[date] = None,
    ) -> Transaction:
        """
        Record a transaction and apply it to the account balance.

        The amount must be non-negative; the type carries the sign. When the
        account is unknown the transaction is still recorded and the balance
        update is skipped, unless the ledger is configured to reject it.

        Raises:
            pydantic.ValidationError: Negative amount or bad type (nothing
                is written)
            AccountNotFoundError: Unknown account with strict checking on
            StoreError: If the remote write fails (nothing is applied)
        """
        backend, identity = self._active()
        transaction = Transaction(
            account_id=account_id,
            amount=amount,
            type=tx_type,
            category=category,
            note=note,
            date=on_date or self._clock(),
        )

        account = self._snapshot.find_account(account_id)
        if account is None:
            if self._settings.reject_unknown_account:
                raise AccountNotFoundError(account_id)
            logger.warning(
                "balance_update_skipped",
                account_id=account_id,
                transaction_id=transaction.id,
            )
            self._audit.log_balance_update_skipped(identity.uid, transaction.id, account_id)

        await self._write("add_transaction", backend.record_transaction(transaction, account))

        self._audit.log_transaction_recorded(
            owner_id=identity.uid,
            transaction_id=transaction.id,
            account_id=account_id,
            tx_type=transaction.type.value,
            amount=transaction.amount,
        )
        return transaction
