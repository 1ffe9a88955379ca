"""
Audit Models for SmartFinance

Every significant action in the system is logged for audit purposes:
sign-in and sign-out, mode switches, ledger mutations, store failures and
advisory fallbacks.

DESIGN DECISION: Audit events are append-only records. They are built
here and written to the structured log by the AuditLogger.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    SIGNED_IN = "signed_in"
    SIGNED_UP = "signed_up"
    SIGNED_OUT = "signed_out"
    DEMO_MODE_ENTERED = "demo_mode_entered"
    AUTH_FAILED = "auth_failed"

    # Ledger
    LEDGER_MODE_SELECTED = "ledger_mode_selected"
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"
    ACCOUNT_DELETE_DECLINED = "account_delete_declined"
    TRANSACTION_RECORDED = "transaction_recorded"
    BALANCE_UPDATE_SKIPPED = "balance_update_skipped"
    STORE_ERROR = "store_error"

    # Advisory
    ADVISORY_FALLBACK = "advisory_fallback"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - who and what is this about?
    owner_id: Optional[str] = Field(
        default=None,
        description="Identity the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.signed_in(uid, email)
        event = AuditEventBuilder.transaction_recorded(owner_id, tx)
    """

    @staticmethod
    def signed_in(uid: str, email: Optional[str], created: bool = False) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_UP if created else AuditEventType.SIGNED_IN,
            owner_id=uid,
            entity_type="identity",
            entity_id=uid,
            description="User signed up" if created else "User signed in",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def signed_out(uid: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            owner_id=uid,
            entity_type="identity",
            entity_id=uid,
            description="Session ended",
            is_user_action=True,
        )

    @staticmethod
    def demo_mode_entered(uid: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEMO_MODE_ENTERED,
            owner_id=uid,
            entity_type="identity",
            entity_id=uid,
            description="Guest entered demo mode",
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(action: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="identity",
            description=f"Authentication failed during {action}",
            error_message=error_message,
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def ledger_mode_selected(owner_id: Optional[str], mode: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_MODE_SELECTED,
            owner_id=owner_id,
            entity_type="ledger",
            description=f"Ledger switched to {mode} mode",
            details={"mode": mode},
        )

    @staticmethod
    def account_created(
        owner_id: str,
        account_id: str,
        name: str,
        balance: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {name}",
            details={"name": name, "initial_balance": balance},
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(owner_id: str, account_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account deleted: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def account_delete_declined(owner_id: str, account_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETE_DECLINED,
            owner_id=owner_id,
            entity_type="account",
            entity_id=account_id,
            description="Account deletion declined at confirmation",
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        owner_id: str,
        transaction_id: str,
        account_id: str,
        tx_type: str,
        amount: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{tx_type.capitalize()} of {amount:,.2f} recorded",
            details={
                "account_id": account_id,
                "type": tx_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def balance_update_skipped(
        owner_id: str,
        transaction_id: str,
        account_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_UPDATE_SKIPPED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Referenced account not found; balance left unchanged",
            details={"account_id": account_id},
        )

    @staticmethod
    def store_error(
        owner_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="ledger",
            description=f"Store operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def advisory_fallback(operation: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVISORY_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="advisory",
            description=f"Fallback content served for {operation}",
            error_message=reason,
            details={"operation": operation},
        )
