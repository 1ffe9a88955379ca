"""
Advisory Client

Talks to Gemini for three kinds of content:
- free-text financial advice derived from the current ledger
- a one-line daily inspiration
- a structured market snapshot (JSON, validated against MarketSnapshot)

CRITICAL BOUNDARIES:
- The model only ever sees a derived summary, never raw identifiers
- Every call is a single attempt
- Nothing here raises to the caller. Missing key, timeout, network
  failure, empty or malformed answers all become fixed fallback content
  (AdvisoryError is internal and always caught in this module)
"""

import asyncio
import json
import random
from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from smartfinance.audit import AuditLogger
from smartfinance.config import GeminiSettings
from smartfinance.models.advisory import MarketSnapshot, MarketSource
from smartfinance.models.ledger import Account, Transaction


logger = structlog.get_logger(__name__)

RECENT_TRANSACTION_COUNT = 10

ADVICE_NOT_CONFIGURED = (
    "No valid Gemini API key was found. Set GEMINI_API_KEY in the "
    "environment to enable personalised advice."
)
ADVICE_CONNECTION_ERROR = (
    "Something went wrong while contacting the AI service. Check your "
    "network connection and API key, then try again."
)
ADVICE_UNAVAILABLE = "The AI could not generate advice right now. Please try again later."

FALLBACK_INSPIRATIONS = (
    "Small savings today become big freedom tomorrow.",
    "Pay yourself first, then spend what is left.",
    "Every budget is a plan for the life you want.",
    "Track it today so you can grow it tomorrow.",
    "Wealth is built one careful decision at a time.",
)

FALLBACK_MARKET = {
    "topTraded": [
        {"name": "TSMC (2330)", "volume": "38,214 lots", "change": "+1.2%"},
        {"name": "Hon Hai (2317)", "volume": "29,870 lots", "change": "-0.4%"},
        {"name": "MediaTek (2454)", "volume": "12,506 lots", "change": "+0.8%"},
    ],
    "hotSectors": ["Semiconductors", "AI servers", "Shipping"],
    "summary": (
        "Live market data is unavailable, so this is sample content. "
        "Large-cap technology names usually lead trading volume."
    ),
    "sources": [],
}

ADVICE_PROMPT = """You are a professional personal finance advisor. Based on the user's financial data below, give concise and constructive advice.

Data summary:
- Total balance: ${total_balance}
- Number of accounts: {account_count}
- Most recent {recent_count} transactions: {recent_transactions}

Please cover:
1. Whether the current spending pattern shows anything unusual.
2. How savings or investments could be improved.
3. One concrete tip for reaching a financial goal.

Keep the tone friendly and professional, and stay under 300 words."""

INSPIRATION_PROMPT = (
    "Write one short, original motivational line about saving money or "
    "managing personal finances. Answer with the line only, no quotes."
)

MARKET_PROMPT = """Summarise today's Taiwan stock market for a personal finance app.

Respond with ONLY a JSON object in this exact format:
{"topTraded": [{"name": "instrument name", "volume": "traded volume", "change": "price change"}],
 "hotSectors": ["sector name"],
 "summary": "two or three sentence overview"}

List the three most traded instruments."""


class AdvisoryError(Exception):
    """A Gemini call could not produce usable content."""

    def __init__(self, message: str, reason: str = "error"):
        self.message = message
        self.reason = reason
        super().__init__(message)


def summarize_ledger(
    accounts: Sequence[Account],
    transactions: Sequence[Transaction],
    recent_count: int = RECENT_TRANSACTION_COUNT,
) -> dict[str, Any]:
    """Derived payload sent with the advice prompt. Transactions arrive newest first."""
    return {
        "totalBalance": sum(account.balance for account in accounts),
        "accountCount": len(accounts),
        "recentTransactions": [
            {
                "type": tx.type.value,
                "amount": tx.amount,
                "category": tx.category,
                "date": tx.date.isoformat(),
            }
            for tx in list(transactions)[:recent_count]
        ],
    }


def fallback_market_snapshot() -> MarketSnapshot:
    return MarketSnapshot.model_validate(FALLBACK_MARKET)


def extract_sources(response: Any) -> list[MarketSource]:
    """Citation sources from the response's grounding metadata, if any."""
    sources = []
    for candidate in getattr(response, "candidates", None) or []:
        metadata = getattr(candidate, "grounding_metadata", None)
        for chunk in getattr(metadata, "grounding_chunks", None) or []:
            web = getattr(chunk, "web", None)
            uri = getattr(web, "uri", None)
            if uri:
                sources.append(MarketSource(title=getattr(web, "title", "") or "", uri=uri))
    return sources


class AdvisoryClient:
    """
    Gemini-backed advisory content with deterministic fallbacks.

    A pre-built model can be injected (tests, custom clients); otherwise
    the client configures genai from GeminiSettings on first use.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
        rng: Optional[random.Random] = None,
        audit_logger: Optional[AuditLogger] = None,
        recent_count: int = RECENT_TRANSACTION_COUNT,
    ):
        self._settings = settings or GeminiSettings()
        self._model = model
        self._json_model = model
        self._rng = rng or random.Random()
        self._audit = audit_logger or AuditLogger()
        self._recent_count = recent_count

    @property
    def is_configured(self) -> bool:
        return self._model is not None or self._settings.is_configured

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        generation_config = {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
        }
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config=generation_config,
        )
        self._json_model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                **generation_config,
                "response_mime_type": "application/json",
            },
        )

    async def _generate(self, prompt: str, json_mode: bool = False) -> Any:
        """
        Single Gemini call.

        Raises:
            AdvisoryError: Missing key, timeout or any call failure
        """
        if not self.is_configured:
            raise AdvisoryError("Gemini API key is not configured", reason="not_configured")

        if self._model is None:
            self._configure_genai()
        model = self._json_model if json_mode else self._model

        try:
            return await asyncio.wait_for(
                model.generate_content_async(prompt),
                timeout=self._settings.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise AdvisoryError("Gemini request timed out", reason="timeout")
        except Exception as e:
            raise AdvisoryError(f"Gemini request failed: {e}", reason="error") from e

    @staticmethod
    def _text(response: Any) -> str:
        try:
            text = response.text
        except (ValueError, AttributeError) as e:
            # Blocked or empty candidates raise on .text
            raise AdvisoryError(f"No text in response: {e}", reason="empty") from e
        text = (text or "").strip()
        if not text:
            raise AdvisoryError("Empty response", reason="empty")
        return text

    def _fallback(self, operation: str, error: AdvisoryError) -> None:
        logger.warning(
            "advisory_fallback",
            operation=operation,
            reason=error.reason,
            error=error.message,
        )
        self._audit.log_advisory_fallback(operation, error.reason)

    async def get_financial_advice(
        self,
        accounts: Sequence[Account],
        transactions: Sequence[Transaction],
    ) -> str:
        """Advice text for the given ledger. Never raises, never empty."""
        summary = summarize_ledger(accounts, transactions, self._recent_count)
        prompt = ADVICE_PROMPT.format(
            total_balance=summary["totalBalance"],
            account_count=summary["accountCount"],
            recent_count=self._recent_count,
            recent_transactions=json.dumps(summary["recentTransactions"], ensure_ascii=False),
        )

        try:
            response = await self._generate(prompt)
            return self._text(response)
        except AdvisoryError as e:
            self._fallback("financial_advice", e)
            if e.reason == "not_configured":
                return ADVICE_NOT_CONFIGURED
            if e.reason == "empty":
                return ADVICE_UNAVAILABLE
            return ADVICE_CONNECTION_ERROR

    async def get_daily_inspiration(self) -> str:
        """One short motivational line."""
        try:
            response = await self._generate(INSPIRATION_PROMPT)
            line = self._text(response).strip('"').strip()
            if not line:
                raise AdvisoryError("Inspiration was only quote marks", reason="empty")
            return line
        except AdvisoryError as e:
            self._fallback("daily_inspiration", e)
            return self._rng.choice(FALLBACK_INSPIRATIONS)

    async def get_market_snapshot(self) -> MarketSnapshot:
        """
        Structured market commentary.

        The answer must parse as JSON and validate against MarketSnapshot;
        anything else yields the fixed fallback (three entries, no sources).
        """
        try:
            response = await self._generate(MARKET_PROMPT, json_mode=True)
            text = self._text(response)

            start = text.find("{")
            end = text.rfind("}") + 1
            if start < 0 or end <= start:
                raise AdvisoryError("No JSON object in response", reason="malformed")
            try:
                data = json.loads(text[start:end])
                snapshot = MarketSnapshot.model_validate(data)
            except (ValueError, ValidationError) as e:
                raise AdvisoryError(f"Malformed market snapshot: {e}", reason="malformed") from e

            sources = extract_sources(response)
            if sources:
                snapshot = snapshot.model_copy(update={"sources": sources})
            return snapshot
        except AdvisoryError as e:
            self._fallback("market_snapshot", e)
            return fallback_market_snapshot()
