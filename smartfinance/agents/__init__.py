"""AI Agents package."""

from smartfinance.agents.advisor import (
    ADVICE_CONNECTION_ERROR,
    ADVICE_NOT_CONFIGURED,
    ADVICE_UNAVAILABLE,
    FALLBACK_INSPIRATIONS,
    AdvisoryClient,
    AdvisoryError,
    fallback_market_snapshot,
    summarize_ledger,
)

__all__ = [
    "ADVICE_CONNECTION_ERROR",
    "ADVICE_NOT_CONFIGURED",
    "ADVICE_UNAVAILABLE",
    "FALLBACK_INSPIRATIONS",
    "AdvisoryClient",
    "AdvisoryError",
    "fallback_market_snapshot",
    "summarize_ledger",
]
