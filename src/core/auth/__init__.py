"""
Authentication module.

Components:
    - TokenCache: Per-scope token caching with expiry checks
    - AzureTokenProvider: azure-identity backed TokenProvider (SPN, managed identity, CLI)
    - StaticTokenProvider: TokenProvider over a pre-acquired token
"""

from .credentials import AzureTokenProvider, StaticTokenProvider, kusto_scope
from .token_cache import CachedToken, TokenCache

__all__ = [
    "TokenCache",
    "CachedToken",
    "AzureTokenProvider",
    "StaticTokenProvider",
    "kusto_scope",
]
