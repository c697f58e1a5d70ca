"""
Data providers supported by Syncboard.

Provider ids are the values stored in external_tokens.provider and
airbyte_connections.provider. The short aliases "google" and "meta"
are accepted on input and normalized to their canonical ids.
"""

from enum import Enum
from typing import Dict, List


class Provider(str, Enum):
    GOOGLE_ADS = "google_ads"
    META_ADS = "meta_ads"
    WOOCOMMERCE = "woocommerce"


class UnsupportedProviderError(ValueError):
    """Raised when a provider id is not one Syncboard can sync."""

    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


PROVIDER_ALIASES: Dict[str, Provider] = {
    "google": Provider.GOOGLE_ADS,
    "google_ads": Provider.GOOGLE_ADS,
    "meta": Provider.META_ADS,
    "meta_ads": Provider.META_ADS,
    "facebook": Provider.META_ADS,
    "woocommerce": Provider.WOOCOMMERCE,
}

# Connector definition names on the sync platform
SOURCE_DEFINITION_NAMES: Dict[Provider, str] = {
    Provider.WOOCOMMERCE: "WooCommerce",
    Provider.GOOGLE_ADS: "Google Ads",
    Provider.META_ADS: "Facebook Marketing",
}

DESTINATION_DEFINITION_NAME = "Postgres"

# Definition id of the WooCommerce source connector, used by the direct sync flow
WOOCOMMERCE_SOURCE_DEFINITION_ID = "2a2552ca-9f78-4c1c-9eb7-4d0dc66d72df"

PROVIDER_CATALOG: List[dict] = [
    {
        "id": Provider.GOOGLE_ADS.value,
        "name": "Google Ads",
        "description": "Connect your Google Ads account to import campaigns, ad groups and metrics.",
        "auth_url": "/api/auth/google",
        "auth_type": "oauth",
    },
    {
        "id": Provider.META_ADS.value,
        "name": "Meta Ads",
        "description": "Connect your Meta Ads account to import Facebook and Instagram campaign data.",
        "auth_url": "/api/auth/meta",
        "auth_type": "oauth",
    },
    {
        "id": Provider.WOOCOMMERCE.value,
        "name": "WooCommerce",
        "description": "Connect your WooCommerce store with its REST API keys to import orders, products and customers.",
        "auth_url": "",
        "auth_type": "api_key",
    },
]


def normalize_provider(value: str) -> Provider:
    """
    Map a provider id or alias to its canonical Provider.

    Raises:
        UnsupportedProviderError: For unknown or empty values
    """
    key = (value or "").strip().lower()
    provider = PROVIDER_ALIASES.get(key)
    if provider is None:
        raise UnsupportedProviderError(value)
    return provider
