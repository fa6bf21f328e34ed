"""
Tests for Azure AD token providers.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError

from core.auth.credentials import AzureTokenProvider, StaticTokenProvider, kusto_scope
from core.auth.token_cache import TokenCache
from core.errors.exceptions import AuthError

SCOPES = ["https://help.kusto.windows.net/.default"]


@pytest.fixture
def clean_env(monkeypatch):
    for var in (
        "AZURE_CLIENT_ID",
        "AZURE_CLIENT_SECRET",
        "AZURE_TENANT_ID",
        "AZURE_CERTIFICATE_PATH",
    ):
        monkeypatch.delenv(var, raising=False)


def _credential(token="tok", expires_on=4_000_000_000):
    credential = MagicMock()
    credential.get_token = AsyncMock(
        return_value=SimpleNamespace(token=token, expires_on=expires_on)
    )
    credential.close = AsyncMock()
    return credential


class TestKustoScope:
    def test_appends_default(self):
        assert kusto_scope("https://help.kusto.windows.net") == SCOPES[0]

    def test_strips_trailing_slash(self):
        assert kusto_scope("https://help.kusto.windows.net/") == SCOPES[0]


class TestAuthMode:

    def test_defaults_to_default_credential(self, clean_env):
        provider = AzureTokenProvider()
        assert provider.use_default_credential
        assert provider.auth_mode == "default"

    def test_spn_secret_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("AZURE_CLIENT_ID", "cid")
        monkeypatch.setenv("AZURE_CLIENT_SECRET", "secret")
        monkeypatch.setenv("AZURE_TENANT_ID", "tid")

        provider = AzureTokenProvider()

        assert provider.has_spn_credentials
        assert provider.auth_mode == "spn_secret"

    def test_spn_cert_explicit(self, clean_env):
        provider = AzureTokenProvider(
            client_id="cid", tenant_id="tid", certificate_path="/tmp/cert.pem"
        )
        assert provider.auth_mode == "spn_cert"

    def test_incomplete_spn_is_none(self, clean_env):
        provider = AzureTokenProvider(client_id="cid")
        assert provider.auth_mode == "none"


class TestCredentialSelection:

    def test_client_secret_credential(self, clean_env):
        provider = AzureTokenProvider(client_id="cid", client_secret="s", tenant_id="tid")
        with patch("core.auth.credentials.ClientSecretCredential") as cls:
            credential = provider._get_azure_credential()
        cls.assert_called_once_with(tenant_id="tid", client_id="cid", client_secret="s")
        assert credential is cls.return_value

    def test_certificate_credential(self, clean_env, tmp_path):
        cert = tmp_path / "cert.pem"
        cert.write_text("cert")
        provider = AzureTokenProvider(
            client_id="cid", tenant_id="tid", certificate_path=str(cert)
        )
        with patch("core.auth.credentials.CertificateCredential") as cls:
            provider._get_azure_credential()
        cls.assert_called_once_with(tenant_id="tid", client_id="cid", certificate_path=str(cert))

    def test_missing_certificate_file(self, clean_env, tmp_path):
        provider = AzureTokenProvider(
            client_id="cid", tenant_id="tid", certificate_path=str(tmp_path / "missing.pem")
        )
        with pytest.raises(AuthError, match="Certificate file not found"):
            provider._get_azure_credential()

    def test_default_credential(self, clean_env):
        provider = AzureTokenProvider(use_default_credential=True)
        with patch("core.auth.credentials.DefaultAzureCredential") as cls:
            provider._get_azure_credential()
        cls.assert_called_once_with()

    def test_no_configuration(self, clean_env):
        provider = AzureTokenProvider(client_id="cid")
        with pytest.raises(AuthError, match="No valid Azure credential"):
            provider._get_azure_credential()

    def test_credential_reused(self, clean_env):
        provider = AzureTokenProvider(use_default_credential=True)
        with patch("core.auth.credentials.DefaultAzureCredential") as cls:
            first = provider._get_azure_credential()
            second = provider._get_azure_credential()
        assert first is second
        cls.assert_called_once()


class TestGetToken:

    async def test_acquires_and_caches(self, clean_env):
        provider = AzureTokenProvider(use_default_credential=True)
        credential = _credential("tok-1")
        provider._credential = credential

        assert await provider.get_token(SCOPES) == "tok-1"
        assert await provider.get_token(SCOPES) == "tok-1"

        credential.get_token.assert_awaited_once_with(SCOPES[0])

    async def test_refresh_token_clears_cache(self, clean_env):
        provider = AzureTokenProvider(use_default_credential=True)
        credential = _credential()
        provider._credential = credential

        await provider.get_token(SCOPES)
        await provider.refresh_token()
        await provider.get_token(SCOPES)

        assert credential.get_token.await_count == 2

    async def test_authentication_failure_wrapped(self, clean_env):
        provider = AzureTokenProvider(use_default_credential=True)
        credential = _credential()
        credential.get_token.side_effect = ClientAuthenticationError("denied")
        provider._credential = credential

        with pytest.raises(AuthError) as exc_info:
            await provider.get_token(SCOPES)

        assert exc_info.value.context["auth_mode"] == "default"
        assert isinstance(exc_info.value.cause, ClientAuthenticationError)

    async def test_shared_cache(self, clean_env):
        cache = TokenCache()
        cache.set(SCOPES[0], "cached", expires_on=4_000_000_000)
        provider = AzureTokenProvider(cache=cache, use_default_credential=True)

        assert await provider.get_token(SCOPES) == "cached"

    async def test_close(self, clean_env):
        provider = AzureTokenProvider(use_default_credential=True)
        credential = _credential()
        provider._credential = credential

        await provider.close()

        credential.close.assert_awaited_once()
        assert provider._credential is None


class TestStaticTokenProvider:

    async def test_returns_token(self):
        provider = StaticTokenProvider("app-token")
        assert await provider.get_token(SCOPES) == "app-token"
        assert await provider.refresh_token() is None
