"""
Core types and protocols used across modules.

This module provides base types, enums, and protocol definitions that are
shared by the query client and the ingestion client.
"""

from enum import Enum
from typing import Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed on retry
                   (e.g., throttling, 5xx responses, network timeouts)
        AUTH: Authentication failures requiring credential refresh
              (e.g., 401 errors, expired tokens)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., malformed input, semantic query errors, unknown accounts)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class TokenProvider(Protocol):
    """
    Protocol for authentication token providers.

    The query client calls get_token() once per outbound request and puts
    the result in the Authorization header.
    """

    async def get_token(self, scopes: list[str]) -> str:
        """
        Get an access token for the specified scopes.

        Raises:
            AuthError: If token acquisition fails
        """
        ...

    async def refresh_token(self) -> None:
        """Force refresh of cached token."""
        ...


__all__ = [
    "ErrorCategory",
    "TokenProvider",
]
