"""
Configuration Management for SmartFinance

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here and handed to the
components as one explicit object. Nothing reads the environment on its own,
so tests can build a Settings with whatever values they need.

Missing secrets are NOT errors:
- No Firebase configuration  -> ledger runs in local (demo) mode
- No Gemini API key          -> advisory client returns fallback content
"""

import json
from functools import lru_cache
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Placeholder values that build tooling writes when a secret is not set
_UNSET_MARKERS = {"", "undefined", "null", "none"}


def _is_set(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in _UNSET_MARKERS


class FirebaseSettings(BaseSettings):
    """Firebase Authentication and Firestore configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config: Optional[str] = Field(
        default=None,
        description="Firebase web config as a JSON string (apiKey, projectId, ...)",
    )
    web_api_key: Optional[str] = Field(
        default=None,
        description="Web API key; overrides apiKey from the web config",
    )
    credentials_path: Optional[str] = Field(
        default=None,
        description="Path to a service account JSON used for Firestore access",
    )
    auth_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout for Identity Toolkit REST calls",
    )

    @property
    def web_config(self) -> dict[str, Any]:
        """Parsed web config, or an empty dict if absent or malformed."""
        if not _is_set(self.config):
            return {}
        try:
            parsed = json.loads(self.config)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @property
    def api_key(self) -> Optional[str]:
        if _is_set(self.web_api_key):
            return self.web_api_key.strip()
        key = self.web_config.get("apiKey")
        return key if isinstance(key, str) and _is_set(key) else None

    @property
    def project_id(self) -> Optional[str]:
        project = self.web_config.get("projectId")
        return project if isinstance(project, str) and _is_set(project) else None

    @property
    def auth_configured(self) -> bool:
        return self.api_key is not None

    @property
    def store_configured(self) -> bool:
        return self.project_id is not None or _is_set(self.credentials_path)


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key; absence routes every call to fallback content",
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use",
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Model temperature",
    )
    request_timeout_seconds: Optional[float] = Field(
        default=30.0,
        gt=0,
        description="Per-call timeout; None waits indefinitely",
    )

    @property
    def is_configured(self) -> bool:
        return _is_set(self.api_key)


class LedgerSettings(BaseSettings):
    """Ledger synchronization behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    transaction_page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Most recent transactions kept in the live snapshot",
    )
    advice_recent_count: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Recent transactions included in the advice prompt",
    )
    reject_unknown_account: bool = Field(
        default=False,
        description="Reject transactions whose account is not in the snapshot",
    )


class Settings(BaseModel):
    """
    Root settings container.

    Constructed once at startup and passed to the components that need it.
    """

    firebase: FirebaseSettings = Field(default_factory=FirebaseSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Report which integrations are usable with the given settings.

    Useful for startup checks; nothing here raises.
    """
    settings = settings or get_settings()
    return {
        "firebase_auth": settings.firebase.auth_configured,
        "firebase_store": settings.firebase.store_configured,
        "gemini": settings.gemini.is_configured,
    }
