"""
Abstract Authentication Provider Interface

The provider is an opaque capability: it turns credentials into an
authenticated Identity or an AuthError, and pushes sign-in state changes
to subscribers.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from smartfinance.models.ledger import Identity


IdentityListener = Callable[[Optional[Identity]], None]


class AuthError(Exception):
    """
    Authentication failed.

    `message` is short and safe to show to the user; `code` keeps the
    provider's error code for logs.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)


class AuthProviderInterface(ABC):
    """Abstract interface for an email/password authentication provider."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """
        Sign in with existing credentials.

        Raises:
            AuthError: Bad credentials, malformed email or network failure
        """
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        """
        Create a new account and sign in to it.

        Raises:
            AuthError: Email taken, weak password, malformed email or
                network failure
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """End the provider session. Idempotent."""
        pass

    @abstractmethod
    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Receive sign-in state changes.

        The listener is called once immediately with the current state
        (an already signed-in session, or None), then on every change.

        Returns:
            A callable that stops the notifications
        """
        pass
