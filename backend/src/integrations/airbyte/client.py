"""
Airbyte configuration API client.

This client handles:
- Bearer tokens from the client-credentials grant, cached until shortly
  before they expire
- Workspace, connector definition, source, destination and connection
  management
- Manual sync jobs

Every call is a POST of a JSON body to ``{AIRBYTE_API_URL}/<resource>/<action>``.

When AIRBYTE_CLIENT_ID or AIRBYTE_CLIENT_SECRET is missing the client runs
in mock mode: no request leaves the process and create/sync calls answer
with placeholder ids (``mock-...``) so the rest of the app keeps working
in development.

SECURITY: the client secret and bearer tokens are never logged.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, List, Dict, Any

import httpx

from src.integrations.airbyte.exceptions import (
    AirbyteError,
    AirbyteAuthenticationError,
    AirbyteRateLimitError,
    AirbyteConnectionError,
    AirbyteNotFoundError,
    AirbyteSyncError,
)
from src.integrations.airbyte.models import (
    AirbyteHealth,
    AirbyteWorkspace,
    ConnectorDefinition,
    AirbyteSource,
    AirbyteDestination,
    AirbyteConnection,
    AirbyteJob,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000/api/v1"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
TOKEN_EXPIRY_MARGIN_SECONDS = 60
DOCKER_HOST = "host.docker.internal"


@dataclass
class _CachedToken:
    authorization: str
    expires_at: float
    client_id: str


_token_cache: Optional[_CachedToken] = None


def invalidate_token_cache() -> None:
    """Forget the cached bearer token (credentials changed or token rejected)."""
    global _token_cache
    _token_cache = None


def is_docker_environment() -> bool:
    """The app runs next to a local auth/database stack started with Docker."""
    return "localhost" in os.getenv("SUPABASE_URL", "")


def resolve_api_url(api_url: str) -> str:
    """Point localhost URLs at the Docker host when running inside Docker."""
    if is_docker_environment() and "localhost" in api_url:
        return api_url.replace("localhost", DOCKER_HOST)
    return api_url


def _mock_response(endpoint: str) -> Dict[str, Any]:
    ts = int(time.time() * 1000)
    if endpoint == "workspaces/create":
        return {"workspaceId": f"mock-{ts}"}
    if endpoint == "sources/create":
        return {"sourceId": f"mock-source-{ts}"}
    if endpoint == "destinations/create":
        return {"destinationId": f"mock-dest-{ts}"}
    if endpoint == "connections/create":
        return {"connectionId": f"mock-conn-{ts}"}
    if endpoint == "connections/sync":
        return {"job": {"id": ts, "status": "running"}}
    return {}


class AirbyteClient:
    """
    Async client for the Airbyte configuration API.

    All methods are async and should be used with async/await.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ):
        """
        Args:
            api_url: API base URL (default: AIRBYTE_API_URL or local instance)
            client_id: Application client id (default: AIRBYTE_CLIENT_ID)
            client_secret: Application client secret (default: AIRBYTE_CLIENT_SECRET)
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
        """
        self.api_url = (
            api_url or os.getenv("AIRBYTE_API_URL") or DEFAULT_API_URL
        ).rstrip("/")
        self.client_id = client_id if client_id is not None else os.getenv("AIRBYTE_CLIENT_ID", "")
        self.client_secret = (
            client_secret if client_secret is not None else os.getenv("AIRBYTE_CLIENT_SECRET", "")
        )

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AirbyteClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def effective_url(self) -> str:
        return resolve_api_url(self.api_url)

    def configure(
        self,
        api_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> None:
        """Replace connection settings; the cached token is discarded."""
        if api_url:
            self.api_url = api_url.rstrip("/")
        if client_id is not None:
            self.client_id = client_id
        if client_secret is not None:
            self.client_secret = client_secret
        invalidate_token_cache()

    def get_config(self) -> Dict[str, Any]:
        """Current settings, safe to log or return from diagnostics."""
        return {
            "api_url": self.api_url,
            "effective_url": self.effective_url,
            "client_id": self.client_id,
            "client_secret": "********" if self.client_secret else "",
            "has_credentials": self.has_credentials,
        }

    async def _get_authorization(self) -> str:
        """
        Return the Authorization header value, fetching a token when needed.

        Raises:
            AirbyteAuthenticationError: If the token endpoint rejects the grant
            AirbyteConnectionError: If the token endpoint cannot be reached
        """
        global _token_cache
        now = time.time()
        if (
            _token_cache is not None
            and _token_cache.client_id == self.client_id
            and _token_cache.expires_at > now
        ):
            return _token_cache.authorization

        url = f"{self.effective_url}/token"
        try:
            response = await self._client.request(
                method="POST",
                url=url,
                json={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
        except httpx.TimeoutException as e:
            logger.error("Airbyte token request timed out", extra={"url": url})
            raise AirbyteConnectionError(f"Token request timeout: {e}", endpoint="token")
        except httpx.RequestError as e:
            logger.error("Airbyte token request failed", extra={"url": url, "error": str(e)})
            raise AirbyteConnectionError(f"Connection error: {e}", endpoint="token")

        if response.status_code == 401:
            logger.error("Airbyte rejected client credentials", extra={"url": url})
            raise AirbyteAuthenticationError(endpoint="token")

        if response.status_code == 404:
            logger.error("Airbyte token endpoint not found", extra={"url": url})
            raise AirbyteAuthenticationError(
                message=f"Token endpoint not found at {url} - check AIRBYTE_API_URL",
                status_code=404,
                endpoint="token",
            )

        if response.status_code >= 400:
            logger.error(
                "Airbyte token request failed",
                extra={"url": url, "status_code": response.status_code},
            )
            raise AirbyteAuthenticationError(
                message=f"Failed to obtain Airbyte token: {response.status_code}",
                status_code=response.status_code,
                endpoint="token",
            )

        data = response.json()
        access_token = data.get("access_token")
        if not access_token:
            raise AirbyteAuthenticationError(
                message="Token response did not include an access_token",
                status_code=response.status_code,
                endpoint="token",
            )

        expires_in = int(data.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        authorization = f"{data.get('token_type') or 'Bearer'} {access_token}"
        _token_cache = _CachedToken(
            authorization=authorization,
            expires_at=now + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS,
            client_id=self.client_id,
        )
        logger.info("Obtained Airbyte access token", extra={"expires_in": expires_in})
        return authorization

    async def _request(
        self,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        method: str = "POST",
    ) -> Dict[str, Any]:
        """
        Call the configuration API.

        Returns:
            Response body as a dict ({} for 204 responses)

        Raises:
            AirbyteError: On API errors
        """
        endpoint = endpoint.strip("/")

        if not self.has_credentials:
            logger.warning(
                "Airbyte credentials not configured, answering with mock data",
                extra={"endpoint": endpoint},
            )
            return _mock_response(endpoint)

        authorization = await self._get_authorization()
        url = f"{self.effective_url}/{endpoint}"

        try:
            response = await self._client.request(
                method=method,
                url=url,
                json=body,
                headers={"Authorization": authorization},
            )
        except httpx.TimeoutException as e:
            logger.error("Airbyte API timeout", extra={"endpoint": endpoint, "error": str(e)})
            raise AirbyteConnectionError(f"Request timeout: {e}", endpoint=endpoint)
        except httpx.RequestError as e:
            logger.error("Airbyte API connection error", extra={"endpoint": endpoint, "error": str(e)})
            raise AirbyteConnectionError(f"Connection error: {e}", endpoint=endpoint)

        if response.status_code in (401, 403):
            invalidate_token_cache()
            logger.error(
                "Airbyte API authorization failed",
                extra={"status_code": response.status_code, "endpoint": endpoint},
            )
            raise AirbyteAuthenticationError(
                message=f"Airbyte API refused {endpoint}: {response.status_code}",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        if response.status_code == 404:
            raise AirbyteNotFoundError(
                message=f"Resource not found: {endpoint}",
                endpoint=endpoint,
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                "Airbyte API rate limited",
                extra={"endpoint": endpoint, "retry_after": retry_after},
            )
            raise AirbyteRateLimitError(
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                endpoint=endpoint,
            )

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = {"message": response.text[:500]}

            logger.error(
                "Airbyte API error",
                extra={
                    "status_code": response.status_code,
                    "endpoint": endpoint,
                    "response": str(error_body)[:500],
                },
            )
            raise AirbyteError(
                message=f"Airbyte API error: {response.status_code} on {endpoint}",
                status_code=response.status_code,
                endpoint=endpoint,
                response=error_body if isinstance(error_body, dict) else {"body": error_body},
            )

        if response.status_code == 204:
            return {}

        return response.json()

    async def check_health(self) -> AirbyteHealth:
        """
        Check API health.

        Falls back to an unauthenticated GET of /health when the
        authenticated call fails, so a credential problem can be told
        apart from an unreachable server.
        """
        try:
            data = await self._request("health", method="GET")
            return AirbyteHealth.from_dict(data)
        except AirbyteError as error:
            logger.warning(
                "Authenticated health check failed, trying direct request",
                extra={"error": error.message},
            )
            try:
                response = await self._client.request(
                    method="GET",
                    url=f"{self.effective_url}/health",
                )
            except httpx.RequestError:
                raise error
            if response.status_code != 200:
                raise error
            return AirbyteHealth.from_dict(response.json())

    # =========================================================================
    # Workspaces
    # =========================================================================

    async def create_workspace(self, name: str, email: str) -> AirbyteWorkspace:
        data = await self._request(
            "workspaces/create",
            {
                "name": name,
                "email": email,
                "anonymousDataCollection": False,
                "news": False,
                "securityUpdates": True,
                "displaySetupWizard": False,
            },
        )
        workspace = AirbyteWorkspace.from_dict(data)
        if not workspace.workspace_id:
            raise AirbyteError("Workspace creation returned no workspaceId", endpoint="workspaces/create")

        logger.info("Airbyte workspace created", extra={"workspace_id": workspace.workspace_id})
        return workspace

    async def list_workspaces(self) -> List[AirbyteWorkspace]:
        data = await self._request("workspaces/list", {})
        return [AirbyteWorkspace.from_dict(w) for w in data.get("workspaces", [])]

    # =========================================================================
    # Connector definitions
    # =========================================================================

    async def list_source_definitions(
        self,
        workspace_id: Optional[str] = None,
    ) -> List[ConnectorDefinition]:
        """List source definitions, scoped to a workspace when one is given."""
        if workspace_id:
            data = await self._request(
                "source_definitions/list_for_workspace", {"workspaceId": workspace_id}
            )
        else:
            data = await self._request("source_definitions/list", {})
        return [ConnectorDefinition.from_dict(d) for d in data.get("sourceDefinitions", [])]

    async def list_destination_definitions(
        self,
        workspace_id: Optional[str] = None,
    ) -> List[ConnectorDefinition]:
        if workspace_id:
            data = await self._request(
                "destination_definitions/list_for_workspace", {"workspaceId": workspace_id}
            )
        else:
            data = await self._request("destination_definitions/list", {})
        return [
            ConnectorDefinition.from_dict(d) for d in data.get("destinationDefinitions", [])
        ]

    # =========================================================================
    # Sources
    # =========================================================================

    async def create_source(
        self,
        workspace_id: str,
        source_definition_id: str,
        name: str,
        configuration: Dict[str, Any],
    ) -> AirbyteSource:
        data = await self._request(
            "sources/create",
            {
                "workspaceId": workspace_id,
                "sourceDefinitionId": source_definition_id,
                "connectionConfiguration": configuration,
                "name": name,
            },
        )
        source = AirbyteSource.from_dict(data)
        if not source.source_id:
            raise AirbyteError("Source creation returned no sourceId", endpoint="sources/create")

        logger.info(
            "Airbyte source created",
            extra={"source_id": source.source_id, "source_name": name},
        )
        return source

    async def list_sources(self, workspace_id: str) -> List[AirbyteSource]:
        data = await self._request("sources/list", {"workspaceId": workspace_id})
        return [AirbyteSource.from_dict(s) for s in data.get("sources", [])]

    async def discover_schema(self, source_id: str) -> Dict[str, Any]:
        """
        Run schema discovery for a source.

        Returns:
            The catalog ({"streams": [...]}), empty when nothing was discovered
        """
        data = await self._request(
            "sources/discover_schema",
            {"sourceId": source_id, "disable_cache": True},
        )
        return data.get("catalog") or {}

    # =========================================================================
    # Destinations
    # =========================================================================

    async def create_destination(
        self,
        workspace_id: str,
        destination_definition_id: str,
        name: str,
        configuration: Dict[str, Any],
    ) -> AirbyteDestination:
        data = await self._request(
            "destinations/create",
            {
                "workspaceId": workspace_id,
                "destinationDefinitionId": destination_definition_id,
                "connectionConfiguration": configuration,
                "name": name,
            },
        )
        destination = AirbyteDestination.from_dict(data)
        if not destination.destination_id:
            raise AirbyteError(
                "Destination creation returned no destinationId", endpoint="destinations/create"
            )

        logger.info(
            "Airbyte destination created",
            extra={"destination_id": destination.destination_id, "destination_name": name},
        )
        return destination

    async def list_destinations(self, workspace_id: str) -> List[AirbyteDestination]:
        data = await self._request("destinations/list", {"workspaceId": workspace_id})
        return [AirbyteDestination.from_dict(d) for d in data.get("destinations", [])]

    # =========================================================================
    # Connections and jobs
    # =========================================================================

    async def create_connection(
        self,
        source_id: str,
        destination_id: str,
        name: str,
        sync_catalog: Dict[str, Any],
        prefix: str = "",
        namespace_definition: str = "source",
        namespace_format: str = "${SOURCE_NAMESPACE}",
    ) -> AirbyteConnection:
        """Create a manually scheduled, active connection."""
        data = await self._request(
            "connections/create",
            {
                "sourceId": source_id,
                "destinationId": destination_id,
                "name": name,
                "namespaceDefinition": namespace_definition,
                "namespaceFormat": namespace_format,
                "prefix": prefix,
                "status": "active",
                "scheduleType": "manual",
                "syncCatalog": sync_catalog,
                "operations": [],
            },
        )
        connection = AirbyteConnection.from_dict(data)
        if not connection.connection_id:
            raise AirbyteError(
                "Connection creation returned no connectionId", endpoint="connections/create"
            )

        logger.info(
            "Airbyte connection created",
            extra={
                "connection_id": connection.connection_id,
                "source_id": source_id,
                "destination_id": destination_id,
            },
        )
        return connection

    async def list_connections(self, workspace_id: str) -> List[AirbyteConnection]:
        data = await self._request("connections/list", {"workspaceId": workspace_id})
        return [AirbyteConnection.from_dict(c) for c in data.get("connections", [])]

    async def trigger_sync(self, connection_id: str) -> AirbyteJob:
        """
        Start a manual sync.

        Raises:
            AirbyteSyncError: If the response carries no job id
        """
        data = await self._request("connections/sync", {"connectionId": connection_id})
        job = AirbyteJob.from_dict(data)
        if not job.job_id:
            raise AirbyteSyncError(
                "Sync response did not include a job id",
                connection_id=connection_id,
                endpoint="connections/sync",
            )

        logger.info(
            "Airbyte sync triggered",
            extra={"connection_id": connection_id, "job_id": job.job_id},
        )
        return job

    async def get_job(self, job_id: str) -> AirbyteJob:
        data = await self._request("jobs/get", {"id": int(job_id) if str(job_id).isdigit() else job_id})
        return AirbyteJob.from_dict(data)


def get_airbyte_client(
    api_url: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> AirbyteClient:
    """Factory function to create an AirbyteClient from the environment."""
    return AirbyteClient(
        api_url=api_url,
        client_id=client_id,
        client_secret=client_secret,
    )
