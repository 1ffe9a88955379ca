"""
Ledger Backends

DESIGN DECISION: Remote and local operation are two implementations of
one strategy interface, chosen once per identity change by the Ledger
Store. No call site checks "are we offline?" on its own.

- RemoteLedgerBackend: live queries + atomic writes on a document store
- LocalLedgerBackend:  seeded in-memory collections, synchronous updates

Both push FULL collections to their listeners; the store replaces its
snapshot wholesale on every delivery.
"""

import asyncio
import itertools
import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Optional

import structlog

from smartfinance.models.ledger import (
    Account,
    LedgerMode,
    Transaction,
    TransactionType,
)
from smartfinance.services.storage import (
    DocumentStoreInterface,
    StoreError,
    WriteOperation,
)
from smartfinance.services.storage.interface import Record
from smartfinance.validation import decode_account, decode_all, decode_transaction


logger = structlog.get_logger(__name__)

ACCOUNTS_COLLECTION = "accounts"
TRANSACTIONS_COLLECTION = "transactions"

AccountsListener = Callable[[tuple[Account, ...]], None]
TransactionsListener = Callable[[tuple[Transaction, ...]], None]
StoreErrorListener = Callable[[StoreError], None]


def seed_dataset(today: date) -> tuple[list[Account], list[Transaction]]:
    """Fixed demo data shown in local mode."""
    accounts = [
        Account(id="1", name="Main Cash", balance=52400, color="bg-blue-500"),
        Account(id="2", name="Cathay Bank", balance=185000, color="bg-green-500"),
    ]
    transactions = [
        Transaction(
            id="t1",
            account_id="1",
            amount=120,
            type=TransactionType.EXPENSE,
            category="Food",
            note="Coffee",
            date=today,
        ),
        Transaction(
            id="t2",
            account_id="2",
            amount=48000,
            type=TransactionType.INCOME,
            category="Salary",
            note="October salary",
            date=today,
        ),
    ]
    return accounts, transactions


class LedgerBackend(ABC):
    """Strategy interface behind the Ledger Store."""

    mode: LedgerMode

    @abstractmethod
    def subscribe(
        self,
        on_accounts: AccountsListener,
        on_transactions: TransactionsListener,
        on_error: StoreErrorListener,
    ) -> Callable[[], None]:
        """
        Start delivering full collections.

        Both listeners fire once with the initial data, then after every
        change. The two feeds are independent.

        Raises:
            StoreError: If the feeds cannot be established
        """
        pass

    @abstractmethod
    async def add_account(self, account: Account) -> None:
        pass

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        pass

    @abstractmethod
    async def record_transaction(
        self,
        transaction: Transaction,
        account: Optional[Account],
    ) -> None:
        """
        Store the transaction and apply its signed amount to `account`
        as one operation. With `account` None only the transaction is stored.
        """
        pass


class LocalLedgerBackend(LedgerBackend):
    """
    In-memory ledger for guests and offline operation.

    Transactions are delivered newest first and truncated to the page
    size, matching what the remote feed would show.
    """

    mode = LedgerMode.LOCAL

    def __init__(
        self,
        page_size: int = 50,
        seed: bool = True,
        today: Optional[date] = None,
    ):
        self._page_size = page_size
        self._accounts: dict[str, Account] = {}
        self._transactions: list[tuple[int, Transaction]] = []
        self._counter = itertools.count()
        self._account_listeners: list[AccountsListener] = []
        self._transaction_listeners: list[TransactionsListener] = []

        if seed:
            accounts, transactions = seed_dataset(today or date.today())
            for account in accounts:
                self._accounts[account.id] = account
            for transaction in transactions:
                self._transactions.append((next(self._counter), transaction))

    def _account_view(self) -> tuple[Account, ...]:
        return tuple(self._accounts.values())

    def _transaction_view(self) -> tuple[Transaction, ...]:
        ordered = sorted(
            self._transactions,
            key=lambda item: (item[1].date, item[0]),
            reverse=True,
        )
        return tuple(tx for _, tx in ordered[: self._page_size])

    def _emit_accounts(self) -> None:
        view = self._account_view()
        for listener in list(self._account_listeners):
            listener(view)

    def _emit_transactions(self) -> None:
        view = self._transaction_view()
        for listener in list(self._transaction_listeners):
            listener(view)

    def subscribe(
        self,
        on_accounts: AccountsListener,
        on_transactions: TransactionsListener,
        on_error: StoreErrorListener,
    ) -> Callable[[], None]:
        self._account_listeners.append(on_accounts)
        self._transaction_listeners.append(on_transactions)
        on_accounts(self._account_view())
        on_transactions(self._transaction_view())

        def unsubscribe() -> None:
            if on_accounts in self._account_listeners:
                self._account_listeners.remove(on_accounts)
            if on_transactions in self._transaction_listeners:
                self._transaction_listeners.remove(on_transactions)

        return unsubscribe

    async def add_account(self, account: Account) -> None:
        self._accounts[account.id] = account
        self._emit_accounts()

    async def delete_account(self, account_id: str) -> None:
        self._accounts.pop(account_id, None)
        self._emit_accounts()

    async def record_transaction(
        self,
        transaction: Transaction,
        account: Optional[Account],
    ) -> None:
        self._transactions.append((next(self._counter), transaction))
        # Apply to the backend's own copy; the caller's may be stale
        if account is not None and account.id in self._accounts:
            self._accounts[account.id] = self._accounts[account.id].apply(transaction)
            self._emit_accounts()
        self._emit_transactions()


class RemoteLedgerBackend(LedgerBackend):
    """
    Ledger backed by a document store.

    Live-query deliveries are decoded at the boundary and marshalled onto
    the event loop that established the subscription.
    """

    mode = LedgerMode.REMOTE

    def __init__(
        self,
        store: DocumentStoreInterface,
        owner_id: str,
        page_size: int = 50,
    ):
        self._store = store
        self._owner_id = owner_id
        self._page_size = page_size

    def subscribe(
        self,
        on_accounts: AccountsListener,
        on_transactions: TransactionsListener,
        on_error: StoreErrorListener,
    ) -> Callable[[], None]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        home_thread = threading.get_ident()

        def on_loop(handler: Callable[[list[Record]], None]) -> Callable[[list[Record]], None]:
            def deliver(records: list[Record]) -> None:
                if loop is None or threading.get_ident() == home_thread:
                    handler(records)
                else:
                    loop.call_soon_threadsafe(handler, records)
            return deliver

        def handle_accounts(records: list[Record]) -> None:
            try:
                accounts = decode_all(decode_account, records)
            except StoreError as e:
                on_error(e)
                return
            on_accounts(accounts)

        def handle_transactions(records: list[Record]) -> None:
            try:
                transactions = decode_all(decode_transaction, records)
            except StoreError as e:
                on_error(e)
                return
            on_transactions(transactions)

        def handle_error(exc: Exception) -> None:
            error = exc if isinstance(exc, StoreError) else StoreError(str(exc))
            if loop is None or threading.get_ident() == home_thread:
                on_error(error)
            else:
                loop.call_soon_threadsafe(on_error, error)

        stop_accounts = self._store.watch(
            ACCOUNTS_COLLECTION,
            self._owner_id,
            on_loop(handle_accounts),
            on_error=handle_error,
        )
        try:
            stop_transactions = self._store.watch(
                TRANSACTIONS_COLLECTION,
                self._owner_id,
                on_loop(handle_transactions),
                order_by="date",
                descending=True,
                limit=self._page_size,
                on_error=handle_error,
            )
        except StoreError:
            stop_accounts()
            raise

        def unsubscribe() -> None:
            stop_accounts()
            stop_transactions()

        return unsubscribe

    async def add_account(self, account: Account) -> None:
        await self._store.insert(
            ACCOUNTS_COLLECTION,
            self._owner_id,
            account.model_dump(mode="json"),
            document_id=account.id,
        )

    async def delete_account(self, account_id: str) -> None:
        await self._store.delete(ACCOUNTS_COLLECTION, account_id)

    async def record_transaction(
        self,
        transaction: Transaction,
        account: Optional[Account],
    ) -> None:
        operations = [
            WriteOperation.insert(
                TRANSACTIONS_COLLECTION,
                transaction.id,
                transaction.to_record(),
            )
        ]
        if account is not None:
            operations.append(
                WriteOperation.increment(
                    ACCOUNTS_COLLECTION,
                    account.id,
                    "balance",
                    transaction.signed_amount,
                )
            )
        await self._store.apply(self._owner_id, operations)
