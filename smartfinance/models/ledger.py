"""
Core Data Models for SmartFinance

These models define the schemas for everything the ledger holds:
- Identity: who the ledger belongs to
- Account: a named pool of money
- Transaction: a single recorded money movement
- LedgerSnapshot: the read-only view handed to consumers

DESIGN DECISION: Models are frozen. The Ledger Store is the only writer and
replaces values (model_copy) instead of mutating them, so a snapshot handed
out earlier can never change underneath its reader.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transport",
    "Salary",
    "Bonus",
    "Shopping",
    "Rent",
    "Medical",
    "Education",
    "Investment",
    "Entertainment",
    "Other",
)

ACCOUNT_COLORS: tuple[str, ...] = (
    "bg-blue-500",
    "bg-green-500",
    "bg-purple-500",
    "bg-orange-500",
    "bg-pink-500",
    "bg-indigo-500",
)

UNKNOWN_ACCOUNT_NAME = "Unknown account"


def new_record_id() -> str:
    """Fresh unique identifier for an account or transaction."""
    return uuid4().hex


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a money movement.

    The amount is always stored as a positive magnitude; the sign lives here.
    """
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class IdentityMode(str, Enum):
    """Kind of user context the ledger is scoped to."""
    AUTHENTICATED = "authenticated"
    GUEST = "guest"
    UNAUTHENTICATED = "unauthenticated"


class LedgerMode(str, Enum):
    """Which backend currently feeds the ledger snapshot."""
    REMOTE = "remote"
    LOCAL = "local"
    INACTIVE = "inactive"  # no identity, nothing loaded


# =============================================================================
# IDENTITY
# =============================================================================

GUEST_UID = "guest"


class Identity(BaseModel):
    """The signed-in or guest context that scopes all ledger data."""
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1)
    email: Optional[str] = None
    mode: IdentityMode = IdentityMode.AUTHENTICATED

    @classmethod
    def guest(cls) -> "Identity":
        return cls(uid=GUEST_UID, email=None, mode=IdentityMode.GUEST)

    @property
    def is_guest(self) -> bool:
        return self.mode == IdentityMode.GUEST

    @property
    def display_name(self) -> str:
        if self.email:
            return self.email.split("@")[0]
        return "Guest"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Account(BaseModel):
    """
    A named pool of money.

    Balance is signed and unbounded; it only changes when a transaction
    is recorded against the account.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(default_factory=new_record_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    balance: float = Field(..., allow_inf_nan=False)
    color: str = Field(default=ACCOUNT_COLORS[0])

    def apply(self, transaction: "Transaction") -> "Account":
        """Return a copy of this account with the transaction's effect applied."""
        return self.model_copy(
            update={"balance": self.balance + transaction.signed_amount}
        )


class Transaction(BaseModel):
    """
    A single recorded money movement.

    Immutable once created. `account_id` is a plain reference: deleting the
    account leaves the transaction in place.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(default_factory=new_record_id, min_length=1)
    account_id: str = Field(..., min_length=1, alias="accountId")
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    type: TransactionType
    category: str = Field(default="Other", min_length=1, max_length=100)
    note: str = Field(default="", max_length=500)
    date: date

    @field_validator("date", mode="before")
    @classmethod
    def accept_timestamps(cls, v):
        """Stored dates may carry a time part (ISO timestamps); keep the day."""
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10 and v[10] in "T ":
            return v[:10]
        return v

    @field_validator("note", mode="before")
    @classmethod
    def none_note_is_empty(cls, v):
        return "" if v is None else v

    @property
    def signed_amount(self) -> float:
        """+amount for income, -amount for expense."""
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount

    def to_record(self) -> dict:
        """Serialize with the persisted (camelCase) field names."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Read-only view of the ledger for the current identity.

    Accounts and transactions are tuples of frozen models; consumers route
    every change through the Ledger Store.
    """
    model_config = ConfigDict(frozen=True)

    mode: LedgerMode = LedgerMode.INACTIVE
    owner_id: Optional[str] = None
    accounts: tuple[Account, ...] = ()
    transactions: tuple[Transaction, ...] = ()

    def find_account(self, account_id: str) -> Optional[Account]:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def account_name(self, account_id: str) -> str:
        account = self.find_account(account_id)
        return account.name if account else UNKNOWN_ACCOUNT_NAME

    def transactions_for(self, account_id: str) -> list[Transaction]:
        return [t for t in self.transactions if t.account_id == account_id]

    @property
    def total_balance(self) -> float:
        return sum(account.balance for account in self.accounts)
