"""
Unit tests for the ad platform OAuth service.

Tests cover:
- Authorization URL parameters per provider
- State verification
- Code exchange (success, HTTP errors, transport errors)
- Encrypted token storage
"""

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.constants.providers import Provider, UnsupportedProviderError
from src.platform.secrets import decrypt_secret
from src.services.oauth_service import (
    AdAccountInfo,
    InvalidStateError,
    OAuthConfigurationError,
    OAuthService,
    OAuthTokens,
    TokenExchangeError,
    compute_expires_at,
    generate_state,
    verify_state,
)


@pytest.fixture
def oauth_env(monkeypatch):
    monkeypatch.setenv("GOOGLE_ADS_CLIENT_ID", "google-client")
    monkeypatch.setenv("GOOGLE_ADS_CLIENT_SECRET", "google-secret")
    monkeypatch.setenv("META_ADS_CLIENT_ID", "meta-client")
    monkeypatch.setenv("META_ADS_CLIENT_SECRET", "meta-secret")
    monkeypatch.delenv("GOOGLE_ADS_DEVELOPER_TOKEN", raising=False)


def _mock_http(response=None, error=None):
    """Patch httpx.AsyncClient used by the service; returns (patcher, inner client)."""
    inner = MagicMock()
    inner.post = AsyncMock(return_value=response, side_effect=error)
    inner.get = AsyncMock(return_value=response, side_effect=error)
    patcher = patch("src.services.oauth_service.httpx.AsyncClient")
    return patcher, inner


def _token_response(payload):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json.return_value = payload
    return response


class TestState:

    def test_generated_states_differ(self):
        assert generate_state() != generate_state()
        assert len(generate_state()) >= 32

    def test_matching_state(self):
        verify_state("abc", "abc")

    @pytest.mark.security
    @pytest.mark.parametrize("expected,received", [("abc", "abd"), (None, "abc"), ("abc", None), ("", "")])
    def test_rejected_state(self, expected, received):
        with pytest.raises(InvalidStateError):
            verify_state(expected, received)

    def test_compute_expires_at(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert compute_expires_at(3600, now) == datetime(2024, 1, 1, 1, tzinfo=timezone.utc)
        assert compute_expires_at(None, now) is None
        assert compute_expires_at("soon", now) is None


class TestAuthorizationUrl:

    def test_google_requests_offline_access(self, oauth_env):
        url = OAuthService(Provider.GOOGLE_ADS).create_authorization_url("state-1")

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert parsed.netloc == "accounts.google.com"
        assert params["client_id"] == ["google-client"]
        assert params["redirect_uri"] == ["https://app.syncboard.test/api/auth/google/callback"]
        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["state"] == ["state-1"]
        assert "https://www.googleapis.com/auth/adwords" in params["scope"][0].split(" ")

    def test_meta_uses_comma_scopes(self, oauth_env):
        url = OAuthService(Provider.META_ADS).create_authorization_url("state-2")

        params = parse_qs(urlparse(url).query)
        assert params["scope"] == ["ads_management,ads_read,email"]
        assert params["redirect_uri"] == ["https://app.syncboard.test/api/auth/meta/callback"]
        assert "access_type" not in params

    def test_unconfigured_client(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_ADS_CLIENT_ID", raising=False)

        with pytest.raises(OAuthConfigurationError):
            OAuthService(Provider.GOOGLE_ADS).create_authorization_url("state")

    def test_woocommerce_has_no_oauth(self):
        with pytest.raises(UnsupportedProviderError):
            OAuthService(Provider.WOOCOMMERCE)


class TestExchangeCode:

    @pytest.mark.asyncio
    async def test_google_posts_form(self, oauth_env):
        patcher, inner = _mock_http(_token_response({
            "access_token": "ya29.new",
            "refresh_token": "1//refresh",
            "expires_in": 3599,
            "scope": "adwords",
        }))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            tokens = await OAuthService(Provider.GOOGLE_ADS).exchange_code("code-1")

        assert tokens.access_token == "ya29.new"
        assert tokens.refresh_token == "1//refresh"
        assert tokens.expires_at is not None
        data = inner.post.call_args.kwargs["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["code"] == "code-1"
        inner.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_meta_uses_get(self, oauth_env):
        patcher, inner = _mock_http(_token_response({"access_token": "EAAnew"}))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            tokens = await OAuthService(Provider.META_ADS).exchange_code("code-2")

        assert tokens.access_token == "EAAnew"
        assert tokens.refresh_token is None
        assert inner.get.call_args.kwargs["params"]["client_secret"] == "meta-secret"

    @pytest.mark.asyncio
    async def test_rejected_code(self, oauth_env):
        response = _token_response({})
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "bad request",
            request=MagicMock(),
            response=MagicMock(status_code=400, text="invalid_grant"),
        )
        patcher, inner = _mock_http(response)

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            with pytest.raises(TokenExchangeError, match="400"):
                await OAuthService(Provider.GOOGLE_ADS).exchange_code("code-1")

    @pytest.mark.asyncio
    async def test_unreachable_provider(self, oauth_env):
        patcher, inner = _mock_http(error=httpx.ConnectError("refused"))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            with pytest.raises(TokenExchangeError):
                await OAuthService(Provider.META_ADS).exchange_code("code-2")

    @pytest.mark.asyncio
    async def test_response_without_access_token(self, oauth_env):
        patcher, inner = _mock_http(_token_response({"error": "nope"}))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            with pytest.raises(TokenExchangeError, match="access_token"):
                await OAuthService(Provider.META_ADS).exchange_code("code-2")

    @pytest.mark.asyncio
    async def test_missing_code(self, oauth_env):
        with pytest.raises(TokenExchangeError):
            await OAuthService(Provider.GOOGLE_ADS).exchange_code("")


class TestFetchAdAccounts:

    @pytest.mark.asyncio
    async def test_google_customer_ids(self, oauth_env, monkeypatch):
        monkeypatch.setenv("GOOGLE_ADS_DEVELOPER_TOKEN", "dev-token")
        patcher, inner = _mock_http(_token_response({
            "resourceNames": ["customers/1234567890", "customers/9876543210"],
        }))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            account = await OAuthService(Provider.GOOGLE_ADS).fetch_ad_accounts("ya29.a")

        assert account.metadata["customer_id"] == "1234567890"
        assert account.metadata["customer_ids"] == ["1234567890", "9876543210"]
        headers = inner.get.call_args.kwargs["headers"]
        assert headers["developer-token"] == "dev-token"
        assert headers["Authorization"] == "Bearer ya29.a"

    @pytest.mark.asyncio
    async def test_google_without_developer_token(self, oauth_env):
        patcher, inner = _mock_http()

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            account = await OAuthService(Provider.GOOGLE_ADS).fetch_ad_accounts("ya29.a")

        assert account.metadata == {}
        inner.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_meta_ad_accounts(self, oauth_env):
        patcher, inner = _mock_http(_token_response({
            "data": [
                {"id": "act_111", "account_id": "111", "name": "Acme"},
                {"id": "act_222", "account_id": "222", "name": "Acme EU"},
            ],
        }))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            account = await OAuthService(Provider.META_ADS).fetch_ad_accounts("EAAtoken")

        assert account.metadata == {"account_ids": ["111", "222"], "business_name": "Acme"}
        assert account.provider_account_name == "Acme"
        assert inner.get.call_args.kwargs["params"]["fields"] == "account_id,name"

    @pytest.mark.asyncio
    async def test_lookup_failure_returns_empty(self, oauth_env):
        patcher, inner = _mock_http(error=httpx.ConnectError("unreachable"))

        with patcher as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            account = await OAuthService(Provider.META_ADS).fetch_ad_accounts("EAAtoken")

        assert account == AdAccountInfo()


class TestStoreTokens:

    @pytest.mark.asyncio
    async def test_tokens_stored_encrypted(self, oauth_env, db_session, project, user_id):
        service = OAuthService(Provider.GOOGLE_ADS)

        token = await service.store_tokens(
            db_session, project.id, user_id, OAuthTokens(access_token="ya29.a", refresh_token="1//r")
        )

        assert token.provider == "google_ads"
        assert token.access_token != "ya29.a"
        assert await decrypt_secret(token.access_token) == "ya29.a"
        assert await decrypt_secret(token.refresh_token) == "1//r"

    @pytest.mark.asyncio
    async def test_reconnect_replaces_tokens(self, oauth_env, db_session, project, user_id):
        service = OAuthService(Provider.META_ADS)

        first = await service.store_tokens(db_session, project.id, user_id, OAuthTokens(access_token="EAA1"))
        second = await service.store_tokens(db_session, project.id, user_id, OAuthTokens(access_token="EAA2"))

        assert first.id == second.id
        assert await decrypt_secret(second.access_token) == "EAA2"

    @pytest.mark.asyncio
    async def test_account_details_stored(self, oauth_env, db_session, project, user_id):
        service = OAuthService(Provider.META_ADS)
        account = AdAccountInfo(metadata={"account_ids": ["111"]}, provider_account_name="Acme")

        token = await service.store_tokens(db_session, project.id, user_id, OAuthTokens(access_token="EAA1"), account)

        assert token.metadata_dict == {"account_ids": ["111"]}
        assert token.provider_account_name == "Acme"
