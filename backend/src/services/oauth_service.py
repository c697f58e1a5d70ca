"""
OAuth authorization-code flows for the ad platforms.

Handles:
- Authorization URL construction (Google Ads, Meta Ads)
- OAuth state generation and verification (CSRF protection)
- Token exchange
- Storing the encrypted tokens on external_tokens for a project
"""

import hmac
import logging
import os
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from src.config.oauth import (
    GOOGLE_ADS_CUSTOMERS_URL,
    META_AD_ACCOUNTS_URL,
    OAuthProviderConfig,
    google_ads_oauth_config,
    meta_ads_oauth_config,
)
from src.constants.providers import Provider, UnsupportedProviderError
from src.models.external_token import ExternalToken
from src.platform.secrets import encrypt_secret, encrypt_optional
from src.repositories.external_tokens import ExternalTokensRepository

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Base exception for OAuth errors."""
    pass


class OAuthConfigurationError(OAuthError):
    """Raised when the provider's client id or secret is not configured."""
    pass


class InvalidStateError(OAuthError):
    """Raised when the callback state does not match the pending flow."""
    pass


class TokenExchangeError(OAuthError):
    """Raised when exchanging the authorization code fails."""
    pass


def generate_state() -> str:
    return secrets.token_urlsafe(32)


def verify_state(expected: Optional[str], received: Optional[str]) -> None:
    """
    Compare the state cookie with the state returned by the provider.

    Raises:
        InvalidStateError: If either value is missing or they differ
    """
    if not expected or not received:
        raise InvalidStateError("OAuth state is missing")
    if not hmac.compare_digest(expected, received):
        raise InvalidStateError("OAuth state mismatch")


def compute_expires_at(expires_in: Any, now: Optional[datetime] = None) -> Optional[datetime]:
    """Absolute expiry from an ``expires_in`` value in seconds."""
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError):
        return None
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=seconds)


@dataclass
class OAuthTokens:
    """Tokens returned by a provider's token endpoint."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AdAccountInfo:
    """Ad account the tokens give access to, as stored on the token row."""
    metadata: Dict[str, Any] = field(default_factory=dict)
    provider_account_name: Optional[str] = None


_CONFIG_FACTORIES = {
    Provider.GOOGLE_ADS: google_ads_oauth_config,
    Provider.META_ADS: meta_ads_oauth_config,
}


class OAuthService:
    """Authorization-code flow for one ad platform."""

    def __init__(
        self,
        provider: Provider,
        config: Optional[OAuthProviderConfig] = None,
        timeout: float = 30.0,
    ):
        if provider not in _CONFIG_FACTORIES:
            raise UnsupportedProviderError(provider.value)
        self.provider = provider
        self.config = config or _CONFIG_FACTORIES[provider]()
        self.timeout = timeout

    def _require_configured(self) -> None:
        if not self.config.is_configured:
            raise OAuthConfigurationError(
                f"OAuth client is not configured for {self.provider.value}"
            )

    def create_authorization_url(self, state: str) -> str:
        """
        Build the provider's consent URL.

        Google asks for offline access with forced consent so a refresh
        token is always returned. Meta takes comma separated scopes.

        Raises:
            OAuthConfigurationError: If the client id/secret are missing
        """
        self._require_configured()

        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "state": state,
            "response_type": "code",
        }
        if self.provider == Provider.GOOGLE_ADS:
            params["scope"] = " ".join(self.config.scopes)
            params["access_type"] = "offline"
            params["prompt"] = "consent"
        else:
            params["scope"] = ",".join(self.config.scopes)

        return f"{self.config.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange an authorization code for tokens.

        Raises:
            OAuthConfigurationError: If the client id/secret are missing
            TokenExchangeError: If the provider rejects the code or is unreachable
        """
        if not code:
            raise TokenExchangeError("Authorization code is missing")
        self._require_configured()

        params = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_uri,
            "code": code,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                if self.provider == Provider.GOOGLE_ADS:
                    params["grant_type"] = "authorization_code"
                    response = await client.post(self.config.token_url, data=params)
                else:
                    response = await client.get(self.config.token_url, params=params)
                response.raise_for_status()
                token_data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error("Token exchange failed", extra={
                "provider": self.provider.value,
                "status_code": e.response.status_code,
                "response_text": e.response.text[:500],
            })
            raise TokenExchangeError(f"Token exchange failed: {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error("Token exchange request error", extra={
                "provider": self.provider.value,
                "error": str(e),
            })
            raise TokenExchangeError(f"Token exchange request error: {e}")

        access_token = token_data.get("access_token")
        if not access_token:
            raise TokenExchangeError("Token response missing access_token")

        logger.info("Token exchange successful", extra={"provider": self.provider.value})

        return OAuthTokens(
            access_token=access_token,
            refresh_token=token_data.get("refresh_token"),
            expires_at=compute_expires_at(token_data.get("expires_in")),
            scope=token_data.get("scope"),
            raw=token_data,
        )

    async def fetch_ad_accounts(self, access_token: str) -> AdAccountInfo:
        """
        Look up the ad accounts reachable with a fresh access token.

        Google Ads answers ``customer_id`` (needs GOOGLE_ADS_DEVELOPER_TOKEN),
        Meta answers ``account_ids`` and ``business_name``. A failed lookup
        is logged and returns empty metadata; the tokens are stored anyway
        and the account can be added later.
        """
        try:
            if self.provider == Provider.GOOGLE_ADS:
                return await self._fetch_google_customers(access_token)
            return await self._fetch_meta_ad_accounts(access_token)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Ad account lookup failed", extra={
                "provider": self.provider.value,
                "error": str(e),
            })
            return AdAccountInfo()

    async def _fetch_google_customers(self, access_token: str) -> AdAccountInfo:
        developer_token = os.getenv("GOOGLE_ADS_DEVELOPER_TOKEN")
        if not developer_token:
            logger.warning("GOOGLE_ADS_DEVELOPER_TOKEN not set, skipping customer lookup")
            return AdAccountInfo()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                GOOGLE_ADS_CUSTOMERS_URL,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "developer-token": developer_token,
                },
            )
            response.raise_for_status()
            resource_names = response.json().get("resourceNames") or []

        customer_ids = [name.split("/")[-1] for name in resource_names if name]
        if not customer_ids:
            return AdAccountInfo()
        return AdAccountInfo(metadata={"customer_id": customer_ids[0], "customer_ids": customer_ids})

    async def _fetch_meta_ad_accounts(self, access_token: str) -> AdAccountInfo:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                META_AD_ACCOUNTS_URL,
                params={"fields": "account_id,name", "access_token": access_token},
            )
            response.raise_for_status()
            accounts = response.json().get("data") or []

        account_ids = [str(a["account_id"]) for a in accounts if a.get("account_id")]
        if not account_ids:
            return AdAccountInfo()
        name = accounts[0].get("name")
        metadata = {"account_ids": account_ids}
        if name:
            metadata["business_name"] = name
        return AdAccountInfo(metadata=metadata, provider_account_name=name)

    async def store_tokens(
        self,
        db_session: Session,
        project_id: str,
        user_id: str,
        tokens: OAuthTokens,
        account: Optional[AdAccountInfo] = None,
    ) -> ExternalToken:
        """
        Encrypt and upsert the tokens for (project_id, provider).

        A reconnect replaces the previous tokens and reactivates the row.
        Account details found at connect time are merged into the metadata.
        """
        account = account or AdAccountInfo()
        return ExternalTokensRepository(db_session, project_id).upsert_token(
            user_id=user_id,
            provider=self.provider.value,
            access_token=await encrypt_secret(tokens.access_token),
            refresh_token=await encrypt_optional(tokens.refresh_token),
            expires_at=tokens.expires_at,
            metadata=account.metadata or None,
            provider_account_name=account.provider_account_name,
        )
