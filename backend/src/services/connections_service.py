"""
Provider connections of a project.

WooCommerce is connected with REST API keys instead of OAuth: the keys are
validated, optionally checked against the store, encrypted and stored on
external_tokens like any other provider credential.
"""

import logging
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse

import httpx
from sqlalchemy.orm import Session

from src.constants.providers import Provider
from src.models.external_token import ExternalToken
from src.platform.secrets import encrypt_secret
from src.repositories.external_tokens import ExternalTokensRepository
from src.services.connector_configs import encode_woocommerce_credentials

logger = logging.getLogger(__name__)

WOOCOMMERCE_VERIFY_PATH = "/wp-json/wc/v3/orders"


class ProviderConnectionError(Exception):
    """Base exception for provider connection errors."""
    pass


class InvalidStoreUrlError(ProviderConnectionError):
    pass


class CredentialVerificationError(ProviderConnectionError):
    """The store rejected the API keys or could not be reached."""
    pass


def normalize_store_url(store_url: str) -> str:
    """
    Validate and normalize a WooCommerce store URL.

    Raises:
        InvalidStoreUrlError: If the URL is not an absolute http(s) URL
    """
    value = (store_url or "").strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidStoreUrlError(f"Invalid store URL: {store_url}")
    return value.rstrip("/")


async def verify_woocommerce_credentials(
    store_url: str,
    consumer_key: str,
    consumer_secret: str,
    timeout: float = 15.0,
) -> None:
    """
    Check the keys by reading a single order from the store.

    Raises:
        CredentialVerificationError: On any non-2xx answer or transport error
    """
    url = f"{store_url}{WOOCOMMERCE_VERIFY_PATH}"
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(
                url,
                params={"per_page": 1},
                auth=(consumer_key, consumer_secret),
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.warning("WooCommerce credential check failed", extra={
            "store_url": store_url,
            "status_code": e.response.status_code,
        })
        raise CredentialVerificationError(
            f"WooCommerce rejected the credentials ({e.response.status_code})"
        )
    except httpx.RequestError as e:
        logger.warning("WooCommerce store unreachable", extra={
            "store_url": store_url,
            "error": str(e),
        })
        raise CredentialVerificationError(f"Could not reach the store: {e}")


async def save_woocommerce_credentials(
    db_session: Session,
    project_id: str,
    user_id: str,
    store_url: str,
    consumer_key: str,
    consumer_secret: str,
    verify: bool = False,
) -> ExternalToken:
    """
    Store WooCommerce keys for a project.

    Raises:
        InvalidStoreUrlError: If store_url is not valid
        CredentialVerificationError: If verify is set and the store rejects the keys
    """
    store_url = normalize_store_url(store_url)
    if verify:
        await verify_woocommerce_credentials(store_url, consumer_key, consumer_secret)

    document = encode_woocommerce_credentials(store_url, consumer_key, consumer_secret)
    token = ExternalTokensRepository(db_session, project_id).upsert_token(
        user_id=user_id,
        provider=Provider.WOOCOMMERCE.value,
        access_token=await encrypt_secret(document),
        metadata={"store_url": store_url},
    )

    logger.info("WooCommerce credentials stored", extra={
        "project_id": project_id,
        "store_url": store_url,
        "verified": verify,
    })
    return token


def format_connection(token: ExternalToken) -> Dict[str, Any]:
    """Shape a stored token for the connections page."""
    metadata = token.metadata_dict
    last_modified = token.updated_at or token.created_at

    details: Dict[str, Optional[str]] = {
        "store_url": None,
        "google_ads_account": None,
        "meta_business_name": None,
    }
    if token.provider == Provider.WOOCOMMERCE.value:
        details["store_url"] = metadata.get("store_url")
    elif token.provider == Provider.GOOGLE_ADS.value:
        details["google_ads_account"] = token.provider_account_name or metadata.get("customer_id")
    elif token.provider == Provider.META_ADS.value:
        details["meta_business_name"] = token.provider_account_name or metadata.get("business_name")

    return {
        "id": token.id,
        "provider": token.provider,
        "status": "connected",
        "details": details,
        "lastModified": last_modified.isoformat() if last_modified else None,
        "provider_user_id": token.provider_user_id,
        "provider_account_name": token.provider_account_name,
    }


def list_project_connections(db_session: Session, project_id: str) -> List[Dict[str, Any]]:
    """Formatted connections of a project, newest first."""
    tokens = ExternalTokensRepository(db_session, project_id).list_tokens()
    return [format_connection(token) for token in tokens]
