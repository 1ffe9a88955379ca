"""Audit logging package."""

from smartfinance.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
