"""
Unit tests for provider connections (WooCommerce keys and the connections list).
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.models.external_token import ExternalToken
from src.platform.secrets import decrypt_secret
from src.services.connections_service import (
    CredentialVerificationError,
    InvalidStoreUrlError,
    format_connection,
    list_project_connections,
    normalize_store_url,
    save_woocommerce_credentials,
    verify_woocommerce_credentials,
)


class TestNormalizeStoreUrl:

    def test_trailing_slash_removed(self):
        assert normalize_store_url(" https://shop.example.com/ ") == "https://shop.example.com"

    @pytest.mark.parametrize("value", ["shop.example.com", "ftp://shop.example.com", "", "https://"])
    def test_invalid_urls(self, value):
        with pytest.raises(InvalidStoreUrlError):
            normalize_store_url(value)


class TestVerifyCredentials:

    @pytest.mark.asyncio
    async def test_reads_one_order_with_basic_auth(self):
        inner = MagicMock()
        inner.get = AsyncMock(return_value=MagicMock())

        with patch("src.services.connections_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            await verify_woocommerce_credentials("https://shop.example.com", "ck_1", "cs_1")

        args, kwargs = inner.get.call_args
        assert args[0] == "https://shop.example.com/wp-json/wc/v3/orders"
        assert kwargs["params"] == {"per_page": 1}
        assert kwargs["auth"] == ("ck_1", "cs_1")

    @pytest.mark.asyncio
    async def test_rejected_keys(self):
        response = MagicMock()
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "unauthorized", request=MagicMock(), response=MagicMock(status_code=401)
        )
        inner = MagicMock()
        inner.get = AsyncMock(return_value=response)

        with patch("src.services.connections_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            with pytest.raises(CredentialVerificationError, match="401"):
                await verify_woocommerce_credentials("https://shop.example.com", "ck_1", "bad")

    @pytest.mark.asyncio
    async def test_unreachable_store(self):
        inner = MagicMock()
        inner.get = AsyncMock(side_effect=httpx.ConnectError("no route"))

        with patch("src.services.connections_service.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__.return_value = inner
            with pytest.raises(CredentialVerificationError):
                await verify_woocommerce_credentials("https://shop.example.com", "ck_1", "cs_1")


class TestSaveWooCommerceCredentials:

    @pytest.mark.asyncio
    async def test_document_stored_encrypted(self, db_session, project, user_id):
        token = await save_woocommerce_credentials(
            db_session, project.id, user_id, "https://shop.example.com/", "ck_1", "cs_1"
        )

        assert token.provider == "woocommerce"
        assert token.metadata_dict == {"store_url": "https://shop.example.com"}
        assert "cs_1" not in token.access_token
        document = json.loads(await decrypt_secret(token.access_token))
        assert document == {
            "store_url": "https://shop.example.com",
            "consumer_key": "ck_1",
            "consumer_secret": "cs_1",
        }

    @pytest.mark.asyncio
    async def test_verification_failure_stores_nothing(self, db_session, project, user_id):
        with patch(
            "src.services.connections_service.verify_woocommerce_credentials",
            new_callable=AsyncMock,
            side_effect=CredentialVerificationError("rejected"),
        ):
            with pytest.raises(CredentialVerificationError):
                await save_woocommerce_credentials(
                    db_session, project.id, user_id, "https://shop.example.com", "ck", "cs", verify=True
                )

        assert list_project_connections(db_session, project.id) == []


class TestFormatConnection:

    def _token(self, provider, **kwargs):
        return ExternalToken(
            id="token-1",
            project_id="project-1",
            provider=provider,
            access_token="enc",
            updated_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            **kwargs,
        )

    def test_woocommerce_details(self):
        formatted = format_connection(self._token("woocommerce", extra_metadata={"store_url": "https://s.example.com"}))

        assert formatted["status"] == "connected"
        assert formatted["details"]["store_url"] == "https://s.example.com"
        assert formatted["lastModified"] == "2024-05-01T00:00:00+00:00"

    def test_google_ads_account(self):
        formatted = format_connection(self._token("google_ads", extra_metadata={"customer_id": "123"}))
        assert formatted["details"]["google_ads_account"] == "123"

    def test_meta_account_name_preferred(self):
        formatted = format_connection(self._token(
            "meta_ads",
            provider_account_name="Acme Ads",
            extra_metadata={"business_name": "Acme Inc"},
        ))
        assert formatted["details"]["meta_business_name"] == "Acme Ads"

    @pytest.mark.asyncio
    async def test_list_only_project_connections(self, db_session, make_project, user_id):
        mine = make_project(user_id, "Mine")
        other = make_project(user_id, "Other")
        await save_woocommerce_credentials(db_session, mine.id, user_id, "https://a.example.com", "ck", "cs")
        await save_woocommerce_credentials(db_session, other.id, user_id, "https://b.example.com", "ck", "cs")

        connections = list_project_connections(db_session, mine.id)

        assert len(connections) == 1
        assert connections[0]["details"]["store_url"] == "https://a.example.com"
