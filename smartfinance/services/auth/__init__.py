"""
Authentication Services Package

Provides the authentication provider interface and the Firebase
implementation.
"""

from smartfinance.services.auth.interface import (
    AuthError,
    AuthProviderInterface,
    IdentityListener,
)
from smartfinance.services.auth.firebase_auth import FirebaseAuthProvider

__all__ = [
    "AuthError",
    "AuthProviderInterface",
    "FirebaseAuthProvider",
    "IdentityListener",
]
