"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of every ledger mutation
2. Debugging capability when the remote store misbehaves
3. Visibility into how often advisory content falls back

The audit logger:
- Writes to the structured log (structlog, JSON lines)
- Keeps a bounded in-memory history of recent events
"""

from typing import Optional

import structlog

from smartfinance.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Keeps the most recent events in memory so the current session can
    show its own history.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("smartfinance.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history[-limit:]))

    def log_signed_in(self, uid: str, email: Optional[str], created: bool = False) -> None:
        self.log(AuditEventBuilder.signed_in(uid, email, created=created))

    def log_signed_out(self, uid: str) -> None:
        self.log(AuditEventBuilder.signed_out(uid))

    def log_demo_mode_entered(self, uid: str) -> None:
        self.log(AuditEventBuilder.demo_mode_entered(uid))

    def log_auth_failed(self, action: str, error_message: str) -> None:
        self.log(AuditEventBuilder.auth_failed(action, error_message))

    def log_ledger_mode_selected(self, owner_id: Optional[str], mode: str) -> None:
        self.log(AuditEventBuilder.ledger_mode_selected(owner_id, mode))

    def log_account_created(
        self,
        owner_id: str,
        account_id: str,
        name: str,
        balance: float,
    ) -> None:
        self.log(AuditEventBuilder.account_created(owner_id, account_id, name, balance))

    def log_account_deleted(self, owner_id: str, account_id: str, name: str) -> None:
        self.log(AuditEventBuilder.account_deleted(owner_id, account_id, name))

    def log_account_delete_declined(self, owner_id: str, account_id: str) -> None:
        self.log(AuditEventBuilder.account_delete_declined(owner_id, account_id))

    def log_transaction_recorded(
        self,
        owner_id: str,
        transaction_id: str,
        account_id: str,
        tx_type: str,
        amount: float,
    ) -> None:
        self.log(
            AuditEventBuilder.transaction_recorded(
                owner_id=owner_id,
                transaction_id=transaction_id,
                account_id=account_id,
                tx_type=tx_type,
                amount=amount,
            )
        )

    def log_balance_update_skipped(
        self,
        owner_id: str,
        transaction_id: str,
        account_id: str,
    ) -> None:
        self.log(
            AuditEventBuilder.balance_update_skipped(owner_id, transaction_id, account_id)
        )

    def log_store_error(
        self,
        owner_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.store_error(owner_id, operation, error_message))

    def log_advisory_fallback(self, operation: str, reason: str) -> None:
        self.log(AuditEventBuilder.advisory_fallback(operation, reason))
