"""
Source, destination and catalog configuration for Airbyte connectors.

Builds the ``connectionConfiguration`` documents sent when provisioning:
- WooCommerce, Google Ads and Facebook Marketing sources from a project's
  stored ExternalToken
- The Postgres destination writing into the project's own schema
- The sync catalog, with every stream selected for incremental dedup

SECURITY: the returned configs contain plaintext credentials. Log them
only through redact_secrets.
"""

import json
import logging
import os
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

from src.config.oauth import is_production
from src.constants.providers import Provider, normalize_provider
from src.integrations.airbyte.client import is_docker_environment, DOCKER_HOST
from src.models.external_token import ExternalToken
from src.models.project import project_schema_name
from src.platform.secrets import decrypt_secret, decrypt_optional

logger = logging.getLogger(__name__)

DEFAULT_START_DATE = "2023-01-01T00:00:00Z"
DEVELOPMENT_DB_PASSWORD = "postgres"


class ConnectorConfigError(Exception):
    """Base exception for connector configuration errors."""
    pass


class InvalidCredentialsError(ConnectorConfigError):
    """Stored provider credentials are invalid or incomplete."""
    pass


class DestinationConfigError(ConnectorConfigError):
    """The Postgres destination cannot be configured."""
    pass


@dataclass
class ProviderCredentials:
    """Decrypted credentials of one provider connection."""
    provider: Provider
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    store_url: Optional[str] = None
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def encode_woocommerce_credentials(store_url: str, consumer_key: str, consumer_secret: str) -> str:
    """Serialize WooCommerce keys into the document stored (encrypted) as access_token."""
    return json.dumps({
        "store_url": store_url,
        "consumer_key": consumer_key,
        "consumer_secret": consumer_secret,
    })


async def load_provider_credentials(token: ExternalToken) -> ProviderCredentials:
    """
    Decrypt an ExternalToken into ProviderCredentials.

    Raises:
        InvalidCredentialsError: If a WooCommerce credential document cannot be parsed
        EncryptionError: If the stored values cannot be decrypted
    """
    provider = normalize_provider(token.provider)
    metadata = token.metadata_dict
    access_token = await decrypt_secret(token.access_token)
    refresh_token = await decrypt_optional(token.refresh_token)

    if provider != Provider.WOOCOMMERCE:
        return ProviderCredentials(
            provider=provider,
            access_token=access_token,
            refresh_token=refresh_token,
            metadata=metadata,
        )

    try:
        document = json.loads(access_token)
    except json.JSONDecodeError:
        raise InvalidCredentialsError("WooCommerce credentials are not a valid document")

    return ProviderCredentials(
        provider=provider,
        store_url=document.get("store_url") or metadata.get("store_url"),
        consumer_key=document.get("consumer_key"),
        consumer_secret=document.get("consumer_secret"),
        metadata=metadata,
    )


def build_woocommerce_source_config(credentials: ProviderCredentials) -> Dict[str, Any]:
    if not (credentials.store_url and credentials.consumer_key and credentials.consumer_secret):
        raise InvalidCredentialsError(
            "Incomplete WooCommerce credentials: store_url, consumer_key and consumer_secret are required"
        )
    return {
        "shop": credentials.store_url,
        "api_key": credentials.consumer_key,
        "api_secret": credentials.consumer_secret,
        "start_date": DEFAULT_START_DATE,
        "is_sandbox": False,
    }


def build_google_ads_source_config(credentials: ProviderCredentials) -> Dict[str, Any]:
    """Google Ads source: OAuth app + refresh token + customer id from metadata."""
    customer_id = credentials.metadata.get("customer_id") or credentials.metadata.get("google_ads_account")
    developer_token = os.getenv("GOOGLE_ADS_DEVELOPER_TOKEN", "")
    client_id = os.getenv("GOOGLE_ADS_CLIENT_ID", "")
    client_secret = os.getenv("GOOGLE_ADS_CLIENT_SECRET", "")

    if not credentials.refresh_token:
        raise InvalidCredentialsError("Google Ads requires refresh_token")
    if not customer_id:
        raise InvalidCredentialsError("Google Ads requires customer_id")
    if not (developer_token and client_id and client_secret):
        raise InvalidCredentialsError(
            "Google Ads requires GOOGLE_ADS_DEVELOPER_TOKEN, GOOGLE_ADS_CLIENT_ID and GOOGLE_ADS_CLIENT_SECRET"
        )

    return {
        "credentials": {
            "developer_token": developer_token,
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": credentials.refresh_token,
            "access_token": credentials.access_token,
        },
        "customer_id": str(customer_id).replace("-", ""),
        "start_date": DEFAULT_START_DATE[:10],
    }


def build_meta_ads_source_config(credentials: ProviderCredentials) -> Dict[str, Any]:
    """Facebook Marketing source: long-lived access token + ad account ids."""
    account_ids = credentials.metadata.get("account_ids") or []
    if isinstance(account_ids, str):
        account_ids = [account_ids]
    account_ids = [str(a).replace("act_", "") for a in account_ids if a]

    if not credentials.access_token:
        raise InvalidCredentialsError("Meta Ads requires access_token")
    if not account_ids:
        raise InvalidCredentialsError("Meta Ads requires account_ids")

    return {
        "account_ids": account_ids,
        "access_token": credentials.access_token,
        "start_date": DEFAULT_START_DATE,
    }


_SOURCE_BUILDERS = {
    Provider.WOOCOMMERCE: build_woocommerce_source_config,
    Provider.GOOGLE_ADS: build_google_ads_source_config,
    Provider.META_ADS: build_meta_ads_source_config,
}


def build_source_config(credentials: ProviderCredentials) -> Dict[str, Any]:
    return _SOURCE_BUILDERS[credentials.provider](credentials)


def resolve_destination_host() -> str:
    """
    Host the sync platform should use to reach the project database.

    Local stacks run in Docker, so localhost is swapped for the Docker
    host; otherwise the hostname of SUPABASE_URL is used.
    """
    supabase_url = os.getenv("SUPABASE_URL", "")
    if is_docker_environment():
        return DOCKER_HOST
    return urlparse(supabase_url).hostname or "localhost"


def build_postgres_destination_config(
    project_id: Optional[str] = None,
    schema: Optional[str] = None,
    require_password: bool = False,
) -> Dict[str, Any]:
    """
    Postgres destination writing into project_<uuid_underscored>.

    Args:
        project_id: Project whose schema receives the data
        schema: Explicit schema, overrides the project schema
        require_password: Fail even outside production when no password is set

    Raises:
        DestinationConfigError: If SUPABASE_DB_PASSWORD is missing and required
    """
    password = os.getenv("SUPABASE_DB_PASSWORD")
    if not password:
        if require_password or is_production():
            raise DestinationConfigError("SUPABASE_DB_PASSWORD is not configured")
        logger.warning("SUPABASE_DB_PASSWORD not set, using development password")
        password = DEVELOPMENT_DB_PASSWORD

    if schema is None:
        if not project_id:
            raise DestinationConfigError("project_id or schema is required")
        schema = project_schema_name(project_id)

    return {
        "host": resolve_destination_host(),
        "port": 5432,
        "database": "postgres",
        "schema": schema,
        "username": "postgres",
        "password": password,
        "ssl_mode": {"mode": "disable"},
        "tunnel_method": {"tunnel_method": "NO_TUNNEL"},
    }


def select_cursor_field(properties: Dict[str, Any]) -> List[str]:
    """updated_at, else date/created_at, else the first property, else id."""
    if "updated_at" in properties:
        return ["updated_at"]
    if "date" in properties:
        return ["date"]
    if "created_at" in properties:
        return ["created_at"]
    return [next(iter(properties), "id")]


def select_primary_key(properties: Dict[str, Any]) -> List[List[str]]:
    """id, else the first property that looks like a key, else id."""
    if "id" not in properties:
        for name in properties:
            if "id" in name or "key" in name or name.endswith("_pk"):
                return [[name]]
    return [["id"]]


def placeholder_catalog() -> Dict[str, Any]:
    """Single-stream catalog used in development when discovery finds nothing."""
    return {
        "streams": [
            {
                "stream": {
                    "name": "mock_stream",
                    "namespace": "mock_namespace",
                    "jsonSchema": {
                        "type": "object",
                        "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
                    },
                    "supportedSyncModes": ["full_refresh", "incremental"],
                    "sourceDefinedCursor": True,
                    "defaultCursorField": ["id"],
                    "sourceDefinedPrimaryKey": [["id"]],
                },
                "config": {},
            }
        ]
    }


def configure_sync_catalog(catalog: Dict[str, Any]) -> Dict[str, Any]:
    """
    Select every stream for incremental append_dedup syncing.

    Returns a new catalog; the discovered one is left untouched.
    """
    configured = deepcopy(catalog)
    streams = []
    for entry in configured.get("streams", []):
        stream = entry.get("stream") or {}
        properties = (stream.get("jsonSchema") or {}).get("properties") or {}
        entry["config"] = {
            "syncMode": "incremental",
            "cursorField": select_cursor_field(properties),
            "destinationSyncMode": "append_dedup",
            "primaryKey": select_primary_key(properties),
            "aliasName": stream.get("name", ""),
            "selected": True,
        }
        streams.append(entry)
    configured["streams"] = streams
    return configured
