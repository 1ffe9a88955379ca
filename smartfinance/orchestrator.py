"""
Main Orchestrator for SmartFinance

Ties the components together:
1. Session Manager (who is using the app)
2. Ledger Store (their accounts and transactions, bound to the session)
3. Advisory Client (Gemini advice, inspiration and market commentary)

DESIGN DECISION: Missing configuration degrades, it never fails:
- no Firebase auth config   -> only demo mode is available
- no Firestore credentials  -> every identity gets the local ledger
- no Gemini key             -> fallback advisory content
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

import structlog

from smartfinance.agents import AdvisoryClient
from smartfinance.audit import AuditLogger
from smartfinance.config import Settings, get_settings, validate_all_settings
from smartfinance.ledger import LedgerStore
from smartfinance.models.dashboard import DashboardSummary
from smartfinance.queries import build_dashboard
from smartfinance.services.auth import FirebaseAuthProvider
from smartfinance.services.storage import (
    DocumentStoreInterface,
    FirestoreClient,
    FirestoreDocumentStore,
    StoreError,
)
from smartfinance.session import SessionManager


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything a presentation layer needs."""

    session: SessionManager
    ledger: LedgerStore
    advisor: AdvisoryClient
    audit: AuditLogger

    def dashboard(self, today: Optional[date] = None) -> DashboardSummary:
        return build_dashboard(self.ledger.snapshot, today)

    async def financial_advice(self) -> str:
        snapshot = self.ledger.snapshot
        return await self.advisor.get_financial_advice(snapshot.accounts, snapshot.transactions)

    async def shutdown(self) -> None:
        self.ledger.close()
        self.session.close()


def _connect_document_store(settings: Settings) -> Optional[DocumentStoreInterface]:
    if not settings.firebase.store_configured:
        return None
    try:
        client = FirestoreClient(settings.firebase)
        client.connect()
    except StoreError as e:
        # Storage not configured correctly - continue with the local ledger
        logger.warning("document_store_unavailable", error=str(e))
        return None
    return FirestoreDocumentStore(client)


def create_app_components(
    settings: Optional[Settings] = None,
    document_store: Optional[DocumentStoreInterface] = None,
    start: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Explicit settings; defaults to the cached environment settings
        document_store: Use this store instead of connecting to Firestore
        start: Attach the session to the auth provider's state feed

    Returns:
        AppComponents with the ledger already following the session
    """
    settings = settings or get_settings()
    logger.info("app_starting", integrations=validate_all_settings(settings))

    audit_logger = AuditLogger()

    provider = None
    if settings.firebase.auth_configured:
        provider = FirebaseAuthProvider(settings.firebase)

    if document_store is None:
        document_store = _connect_document_store(settings)

    session = SessionManager(provider=provider, audit_logger=audit_logger)
    ledger = LedgerStore(
        settings=settings.ledger,
        document_store=document_store,
        audit_logger=audit_logger,
    )
    advisor = AdvisoryClient(
        settings=settings.gemini,
        audit_logger=audit_logger,
        recent_count=settings.ledger.advice_recent_count,
    )

    ledger.bind(session)
    if start:
        session.start()

    return AppComponents(
        session=session,
        ledger=ledger,
        advisor=advisor,
        audit=audit_logger,
    )
