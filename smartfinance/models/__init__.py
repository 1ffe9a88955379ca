"""
Data Models Package

This package contains all Pydantic models used in SmartFinance.
All data flowing through the system must conform to these schemas.
"""

from smartfinance.models.ledger import (
    ACCOUNT_COLORS,
    DEFAULT_CATEGORIES,
    UNKNOWN_ACCOUNT_NAME,
    Account,
    Identity,
    IdentityMode,
    LedgerMode,
    LedgerSnapshot,
    Transaction,
    TransactionType,
    new_record_id,
)
from smartfinance.models.advisory import (
    MarketSnapshot,
    MarketSource,
    TradedInstrument,
)
from smartfinance.models.dashboard import (
    CategoryBreakdown,
    DashboardSummary,
)
from smartfinance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ACCOUNT_COLORS",
    "DEFAULT_CATEGORIES",
    "UNKNOWN_ACCOUNT_NAME",
    "Account",
    "Identity",
    "IdentityMode",
    "LedgerMode",
    "LedgerSnapshot",
    "Transaction",
    "TransactionType",
    "new_record_id",
    # Advisory models
    "MarketSnapshot",
    "MarketSource",
    "TradedInstrument",
    # Dashboard models
    "CategoryBreakdown",
    "DashboardSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
