"""Tests for configuration and application wiring."""

import pytest

from smartfinance.config import (
    FirebaseSettings,
    GeminiSettings,
    LedgerSettings,
    Settings,
    validate_all_settings,
)
from smartfinance.models.ledger import Identity, LedgerMode
from smartfinance.orchestrator import create_app_components
from smartfinance.services.storage import InMemoryDocumentStore


def _bare_settings():
    return Settings(
        firebase=FirebaseSettings(config=None, web_api_key=None, credentials_path=None),
        gemini=GeminiSettings(api_key=None),
        ledger=LedgerSettings(),
    )


class TestSettings:
    """pydantic-settings classes."""

    def test_web_config_parsed(self):
        """Test reading apiKey and projectId from the JSON web config."""
        firebase = FirebaseSettings(config='{"apiKey": "k", "projectId": "demo-project"}')
        assert firebase.api_key == "k"
        assert firebase.project_id == "demo-project"
        assert firebase.auth_configured
        assert firebase.store_configured

    def test_malformed_web_config(self):
        """Test that a broken config means not configured."""
        firebase = FirebaseSettings(config="{not json", web_api_key=None, credentials_path=None)
        assert firebase.web_config == {}
        assert not firebase.auth_configured
        assert not firebase.store_configured

    def test_explicit_key_wins(self):
        """Test that FIREBASE_WEB_API_KEY overrides the web config."""
        firebase = FirebaseSettings(config='{"apiKey": "from-config"}', web_api_key=" explicit ")
        assert firebase.api_key == "explicit"

    def test_env_prefix(self, monkeypatch):
        """Test reading values from the environment."""
        monkeypatch.setenv("LEDGER_TRANSACTION_PAGE_SIZE", "20")
        monkeypatch.setenv("LEDGER_REJECT_UNKNOWN_ACCOUNT", "true")
        ledger = LedgerSettings()
        assert ledger.transaction_page_size == 20
        assert ledger.reject_unknown_account is True

    def test_page_size_bounds(self):
        """Test that a zero page size is rejected."""
        with pytest.raises(ValueError):
            LedgerSettings(transaction_page_size=0)

    def test_validate_all_settings(self):
        """Test the integration report with nothing configured."""
        assert validate_all_settings(_bare_settings()) == {
            "firebase_auth": False,
            "firebase_store": False,
            "gemini": False,
        }


class TestCreateAppComponents:
    """Wiring with missing configuration."""

    @pytest.mark.asyncio
    async def test_degrades_without_configuration(self):
        """Test that nothing configured still gives a working demo mode."""
        app = create_app_components(_bare_settings())

        assert not app.session.auth_available
        assert app.ledger.mode == LedgerMode.INACTIVE

        app.session.enter_demo_mode()
        assert app.ledger.mode == LedgerMode.LOCAL
        assert app.dashboard().total_balance == 52400 + 185000

        advice = await app.financial_advice()
        assert advice
        await app.shutdown()

    def test_injected_document_store(self):
        """Test that an injected store is used for authenticated identities."""
        app = create_app_components(_bare_settings(), document_store=InMemoryDocumentStore())
        app.ledger.switch_identity(Identity(uid="u1", email="alex@example.com"))
        assert app.ledger.mode == LedgerMode.REMOTE
        app.ledger.close()
