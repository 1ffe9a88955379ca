"""
Session Manager

Owns the single authoritative "current identity" value:
- an authenticated Identity after sign-in / sign-up
- the synthetic guest Identity after entering demo mode
- None when nobody is signed in

Consumers either subscribe with a callback or iterate the async
`current_identity()` feed. Authentication failures never propagate past
the caller that asked for them: the message is kept as the pending error
until it is consumed or the next attempt starts.
"""

import asyncio
from typing import AsyncIterator, Callable, Optional

import structlog

from smartfinance.audit import AuditLogger
from smartfinance.models.ledger import Identity, IdentityMode
from smartfinance.services.auth import AuthError, AuthProviderInterface, IdentityListener


logger = structlog.get_logger(__name__)

NOT_CONFIGURED_MESSAGE = "Authentication is not configured. Try demo mode instead."


class SessionManager:
    """Tracks the signed-in, guest or absent identity."""

    def __init__(
        self,
        provider: Optional[AuthProviderInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._provider = provider
        self._audit = audit_logger or AuditLogger()
        self._identity: Optional[Identity] = None
        self._listeners: list[IdentityListener] = []
        self._pending_error: Optional[str] = None
        self._provider_unsubscribe: Optional[Callable[[], None]] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Attach to the provider's auth-state feed.

        The provider answers immediately with any session it already holds.
        """
        if self._provider is None or self._provider_unsubscribe is not None:
            return
        self._provider_unsubscribe = self._provider.subscribe(self._on_provider_change)

    def close(self) -> None:
        if self._provider_unsubscribe is not None:
            self._provider_unsubscribe()
            self._provider_unsubscribe = None

    def _on_provider_change(self, identity: Optional[Identity]) -> None:
        # A signed-out provider says nothing about a guest session
        if identity is None and self._identity is not None and self._identity.is_guest:
            return
        self._set_identity(identity)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def mode(self) -> IdentityMode:
        if self._identity is None:
            return IdentityMode.UNAUTHENTICATED
        return self._identity.mode

    @property
    def auth_available(self) -> bool:
        return self._provider is not None

    def consume_error(self) -> Optional[str]:
        """Return the pending authentication error message and clear it."""
        message, self._pending_error = self._pending_error, None
        return message

    def _set_identity(self, identity: Optional[Identity]) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        logger.info(
            "identity_changed",
            uid=identity.uid if identity else None,
            mode=self.mode.value,
        )
        for listener in list(self._listeners):
            listener(identity)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def _authenticate(self, action: str, email: str, password: str) -> Identity:
        self._pending_error = None
        try:
            if self._provider is None:
                raise AuthError(NOT_CONFIGURED_MESSAGE, code="NOT_CONFIGURED")
            if action == "sign_up":
                identity = await self._provider.sign_up(email, password)
            else:
                identity = await self._provider.sign_in(email, password)
        except AuthError as e:
            self._pending_error = e.message
            self._audit.log_auth_failed(action, e.message)
            raise

        self._set_identity(identity)
        self._audit.log_signed_in(identity.uid, identity.email, created=action == "sign_up")
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Sign in with email and password.

        Raises:
            AuthError: With a user-facing message; also kept as the
                pending error
        """
        return await self._authenticate("sign_in", email, password)

    async def sign_up(self, email: str, password: str) -> Identity:
        """Create an account and sign in to it. Same contract as sign_in."""
        return await self._authenticate("sign_up", email, password)

    def enter_demo_mode(self) -> Identity:
        """Switch to the guest identity. Never fails, needs no network."""
        self._pending_error = None
        guest = Identity.guest()
        self._set_identity(guest)
        self._audit.log_demo_mode_entered(guest.uid)
        return guest

    async def sign_out(self) -> None:
        """Clear the current identity, authenticated or guest. Idempotent."""
        previous = self._identity
        if self._provider is not None:
            await self._provider.sign_out()
        self._set_identity(None)
        if previous is not None:
            self._audit.log_signed_out(previous.uid)

    # -------------------------------------------------------------------------
    # Feeds
    # -------------------------------------------------------------------------

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Call `listener` with the current identity now and on every change.

        Returns:
            A callable that stops the notifications
        """
        self._listeners.append(listener)
        listener(self._identity)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def current_identity(self) -> AsyncIterator[Optional[Identity]]:
        """
        Unbounded feed of identity-or-None values, starting with the current one.

        Each call creates an independent subscription that ends when the
        iterator is closed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()
