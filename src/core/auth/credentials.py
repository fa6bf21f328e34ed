"""
Azure AD token providers for the Kusto REST endpoints.

AzureTokenProvider implements the TokenProvider protocol on top of
azure-identity's async credentials:

    - Service Principal (Secret): client ID / secret / tenant
    - Service Principal (Certificate): client ID / certificate path / tenant
    - Default Azure Credential: managed identity, environment variables,
      Azure CLI, etc.

When no method is configured explicitly, configuration is read from the
standard AZURE_CLIENT_ID / AZURE_CLIENT_SECRET / AZURE_TENANT_ID /
AZURE_CERTIFICATE_PATH environment variables, falling back to
DefaultAzureCredential.

Example:
    >>> provider = AzureTokenProvider()
    >>> token = await provider.get_token(["https://help.kusto.windows.net/.default"])
"""

import logging
import os
from pathlib import Path
from typing import Optional

from azure.core.exceptions import ClientAuthenticationError
from azure.identity.aio import (
    CertificateCredential,
    ClientSecretCredential,
    DefaultAzureCredential,
)

from core.auth.token_cache import TokenCache
from core.errors.exceptions import AuthError

logger = logging.getLogger(__name__)


def kusto_scope(cluster_url: str) -> str:
    """OAuth scope for a Kusto cluster: ``{cluster}/.default``."""
    return cluster_url.rstrip("/") + "/.default"


class AzureTokenProvider:
    """
    Unified Azure credential provider with token caching.

    Attributes:
        client_id: Azure AD client ID (for SPN auth)
        client_secret: Client secret (for secret-based SPN auth)
        tenant_id: Azure AD tenant ID
        certificate_path: Path to certificate file (for cert-based SPN auth)
        use_default_credential: Whether to use DefaultAzureCredential
    """

    def __init__(
        self,
        cache: Optional[TokenCache] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_id: Optional[str] = None,
        certificate_path: Optional[str] = None,
        use_default_credential: bool = False,
    ):
        self._cache = cache or TokenCache()
        self._credential = None

        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id
        self.certificate_path = certificate_path
        self.use_default_credential = use_default_credential

        if not any([use_default_credential, client_id]):
            self._load_config_from_env()

    def _load_config_from_env(self) -> None:
        self.client_id = os.getenv("AZURE_CLIENT_ID")
        self.client_secret = os.getenv("AZURE_CLIENT_SECRET")
        self.tenant_id = os.getenv("AZURE_TENANT_ID")
        self.certificate_path = os.getenv("AZURE_CERTIFICATE_PATH")

        if not self.has_spn_credentials:
            self.use_default_credential = True

    @property
    def has_spn_credentials(self) -> bool:
        has_secret = all([self.client_id, self.client_secret, self.tenant_id])
        has_cert = all([self.client_id, self.certificate_path, self.tenant_id])
        return has_secret or has_cert

    @property
    def auth_mode(self) -> str:
        """Active auth mode: "spn_cert", "spn_secret", "default", or "none"."""
        if self.has_spn_credentials:
            if self.certificate_path:
                return "spn_cert"
            return "spn_secret"
        if self.use_default_credential:
            return "default"
        return "none"

    def _get_azure_credential(self):
        if self._credential is not None:
            return self._credential

        if self.certificate_path and self.client_id and self.tenant_id:
            if not Path(self.certificate_path).exists():
                raise AuthError(f"Certificate file not found: {self.certificate_path}")

            logger.info(
                "Using certificate-based Service Principal authentication",
                extra={"tenant_id": self.tenant_id, "client_id": self.client_id},
            )
            self._credential = CertificateCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                certificate_path=self.certificate_path,
            )
            return self._credential

        if self.client_secret and self.client_id and self.tenant_id:
            logger.debug(
                "Using client secret Service Principal authentication",
                extra={"tenant_id": self.tenant_id, "client_id": self.client_id},
            )
            self._credential = ClientSecretCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )
            return self._credential

        if self.use_default_credential:
            logger.info("Using DefaultAzureCredential (managed identity, env vars, etc.)")
            self._credential = DefaultAzureCredential()
            return self._credential

        raise AuthError(
            "No valid Azure credential configuration found. "
            "Configure a Service Principal (secret/cert) or DefaultAzureCredential"
        )

    async def get_token(self, scopes: list[str]) -> str:
        cache_key = " ".join(scopes)
        cached = self._cache.get(cache_key)
        if cached:
            return cached

        credential = self._get_azure_credential()
        try:
            access_token = await credential.get_token(*scopes)
        except ClientAuthenticationError as e:
            raise AuthError(
                f"Failed to acquire token for {cache_key}",
                cause=e,
                context={"auth_mode": self.auth_mode},
            ) from e

        self._cache.set(cache_key, access_token.token, expires_on=access_token.expires_on)
        logger.debug("Acquired access token", extra={"resource": cache_key})
        return access_token.token

    async def refresh_token(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        if self._credential is not None:
            await self._credential.close()
            self._credential = None


class StaticTokenProvider:
    """TokenProvider over a token acquired elsewhere (e.g. an app token)."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self, scopes: list[str]) -> str:
        return self._token

    async def refresh_token(self) -> None:
        return None


__all__ = ["AzureTokenProvider", "StaticTokenProvider", "kusto_scope"]
