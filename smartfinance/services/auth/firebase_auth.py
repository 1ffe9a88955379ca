"""
Firebase Authentication via the Identity Toolkit REST API

DESIGN DECISION: The firebase-admin SDK cannot verify passwords, so
email/password sign-in goes through the public REST endpoints with the
project's web API key.

Each call is a single attempt with a request timeout. Firebase error codes
are mapped to short messages the user can act on.
"""

import asyncio
from typing import Callable, Optional

import requests
import structlog

from smartfinance.config import FirebaseSettings
from smartfinance.models.ledger import Identity, IdentityMode
from smartfinance.services.auth.interface import (
    AuthError,
    AuthProviderInterface,
    IdentityListener,
)


logger = structlog.get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"

ERROR_MESSAGES = {
    "EMAIL_NOT_FOUND": "Incorrect email or password.",
    "INVALID_PASSWORD": "Incorrect email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Incorrect email or password.",
    "INVALID_EMAIL": "The email address is not valid.",
    "MISSING_PASSWORD": "Please enter a password.",
    "EMAIL_EXISTS": "An account with this email already exists.",
    "WEAK_PASSWORD": "Password should be at least 6 characters.",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
    "OPERATION_NOT_ALLOWED": "Email sign-in is not enabled for this project.",
}

DEFAULT_ERROR_MESSAGE = "Authentication failed."
NETWORK_ERROR_MESSAGE = "Could not reach the authentication service. Check your connection."


def error_message_for(code: str) -> str:
    """Map a Firebase error string ('WEAK_PASSWORD : ...') to a user message."""
    key = code.split(":")[0].strip()
    return ERROR_MESSAGES.get(key, DEFAULT_ERROR_MESSAGE)


class FirebaseAuthProvider(AuthProviderInterface):
    """Email/password authentication against Firebase."""

    def __init__(
        self,
        settings: FirebaseSettings,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings
        self._http = session or requests.Session()
        self._current: Optional[Identity] = None
        self._id_token: Optional[str] = None
        self._listeners: list[IdentityListener] = []

    @property
    def current(self) -> Optional[Identity]:
        return self._current

    def _post(self, endpoint: str, payload: dict) -> dict:
        api_key = self._settings.api_key
        if not api_key:
            raise AuthError("Authentication is not configured.", code="NOT_CONFIGURED")

        url = f"{IDENTITY_TOOLKIT_URL}:{endpoint}"
        try:
            response = self._http.post(
                url,
                params={"key": api_key},
                json=payload,
                timeout=self._settings.auth_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("auth_request_failed", endpoint=endpoint, error=str(e))
            raise AuthError(NETWORK_ERROR_MESSAGE, code="NETWORK_ERROR") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            code = data.get("error", {}).get("message", "UNKNOWN") if isinstance(data, dict) else "UNKNOWN"
            logger.info("auth_rejected", endpoint=endpoint, code=code)
            raise AuthError(error_message_for(code), code=code)

        if not isinstance(data, dict) or not data.get("localId"):
            raise AuthError(DEFAULT_ERROR_MESSAGE, code="MALFORMED_RESPONSE")
        return data

    async def _authenticate(self, endpoint: str, email: str, password: str) -> Identity:
        email = (email or "").strip()
        if not email or "@" not in email:
            raise AuthError(ERROR_MESSAGES["INVALID_EMAIL"], code="INVALID_EMAIL")
        if not password:
            raise AuthError(ERROR_MESSAGES["MISSING_PASSWORD"], code="MISSING_PASSWORD")

        data = await asyncio.to_thread(
            self._post,
            endpoint,
            {"email": email, "password": password, "returnSecureToken": True},
        )

        identity = Identity(
            uid=data["localId"],
            email=data.get("email") or email,
            mode=IdentityMode.AUTHENTICATED,
        )
        self._id_token = data.get("idToken")
        self._set_current(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        return await self._authenticate("signInWithPassword", email, password)

    async def sign_up(self, email: str, password: str) -> Identity:
        return await self._authenticate("signUp", email, password)

    async def sign_out(self) -> None:
        self._id_token = None
        self._set_current(None)

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_current(self, identity: Optional[Identity]) -> None:
        if identity == self._current:
            return
        self._current = identity
        for listener in list(self._listeners):
            listener(identity)
