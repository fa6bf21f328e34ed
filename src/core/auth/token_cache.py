"""
Token cache with expiration tracking.

Tokens are cached per scope together with the expiry reported by Azure AD.
A token is considered stale REFRESH_BUFFER_SECS before it actually expires so
it never lapses mid-request.

Example:
    >>> cache = TokenCache()
    >>> cache.set("https://help.kusto.windows.net/.default", "eyJ0eXAi...", expires_on=time.time() + 3600)
    >>> token = cache.get("https://help.kusto.windows.net/.default")
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


# Refresh five minutes before expiry (Azure tokens: 60-90 min lifetime)
REFRESH_BUFFER_SECS = 300
# Used when the issuer doesn't report an expiry
DEFAULT_TOKEN_LIFETIME_SECS = 3600


@dataclass
class CachedToken:
    """
    Token with its absolute expiry.

    Attributes:
        value: The access token string
        expires_on: Epoch seconds when the token expires
    """

    value: str
    expires_on: float

    def is_valid(self, now: float, buffer_secs: float = REFRESH_BUFFER_SECS) -> bool:
        return now < self.expires_on - buffer_secs


class TokenCache:
    """
    In-memory cache for authentication tokens, keyed by scope.

    All callers share one event loop, so no locking is needed.
    """

    def __init__(self, time_provider: Callable[[], float] = time.time):
        self._tokens: Dict[str, CachedToken] = {}
        self._time = time_provider

    def get(self, scope: str) -> Optional[str]:
        """Token string if cached and not about to expire, else None."""
        cached = self._tokens.get(scope)
        if cached and cached.is_valid(self._time()):
            return cached.value
        return None

    def set(self, scope: str, token: str, expires_on: Optional[float] = None) -> None:
        if expires_on is None:
            expires_on = self._time() + DEFAULT_TOKEN_LIFETIME_SECS
        self._tokens[scope] = CachedToken(value=token, expires_on=float(expires_on))

    def clear(self, scope: Optional[str] = None) -> None:
        """Clear one scope, or every cached token when scope is None."""
        if scope:
            self._tokens.pop(scope, None)
        else:
            self._tokens.clear()


__all__ = ["TokenCache", "CachedToken", "REFRESH_BUFFER_SECS", "DEFAULT_TOKEN_LIFETIME_SECS"]
