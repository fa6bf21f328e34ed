"""
Core library: shared infrastructure for the query and ingestion clients.

Modules:
    auth        - Azure AD token acquisition behind the TokenProvider protocol
    resilience  - Exponential backoff for throttled service calls
    logging     - Structured JSON logging with request correlation
    errors      - Error classification and exception hierarchy
    utils       - JSON serialization helpers
"""

from .types import ErrorCategory, TokenProvider

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
    "TokenProvider",
]
