"""
Provisioning and sync orchestration for project data.

Maps a project's provider connection onto the Airbyte object graph:

    active token -> workspace -> source -> destination -> connection -> sync job

Each ensure_* step is idempotent by name: existing sources, destinations
and connections are looked up before anything is created. When Airbyte
credentials are absent, or outside production when a step fails, the
steps answer with placeholder ids (``dev-...`` / ``mock-...``) so the
dashboard keeps working in development.

SECURITY: every flow starts by checking that the session user owns the
project.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from src.config.oauth import is_production
from src.constants.providers import (
    Provider,
    UnsupportedProviderError,
    SOURCE_DEFINITION_NAMES,
    DESTINATION_DEFINITION_NAME,
    WOOCOMMERCE_SOURCE_DEFINITION_ID,
    normalize_provider,
)
from src.integrations.airbyte.client import AirbyteClient, get_airbyte_client
from src.integrations.airbyte.definitions import DefinitionStore
from src.integrations.airbyte.exceptions import AirbyteError, AirbyteNotFoundError
from src.integrations.airbyte.models import ConnectorDefinition, is_placeholder_id
from src.models.project import Project
from src.models.user import User
from src.platform.secrets import redact_secrets
from src.platform.session_context import SessionContext
from src.repositories.airbyte_connections import SyncConnectionsRepository
from src.repositories.external_tokens import ExternalTokensRepository
from src.repositories.sync_logs import SyncLogsRepository
from src.services.connector_configs import (
    ProviderCredentials,
    load_provider_credentials,
    build_source_config,
    build_postgres_destination_config,
    configure_sync_catalog,
    placeholder_catalog,
)
from src.services.project_access import require_owned_project
from src.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)

MOCK_WOOCOMMERCE_DEFINITION_ID = "mock-woocommerce-definition"
MOCK_POSTGRES_DEFINITION_ID = "mock-postgres-definition"


class SyncOrchestratorError(Exception):
    """Base exception for sync orchestration errors."""
    status_code = 500


class TokenNotFoundError(SyncOrchestratorError):
    """No active provider token for the project."""
    status_code = 404

    def __init__(self, project_id: str, provider: str):
        super().__init__(f"No active {provider} connection found for this project")
        self.project_id = project_id
        self.provider = provider


class MissingEmailError(SyncOrchestratorError):
    """The session has no email to name a new workspace after."""
    status_code = 400

    def __init__(self):
        super().__init__("User email is not available")


class ProvisioningError(SyncOrchestratorError):
    """A provisioning step failed against Airbyte."""
    status_code = 500

    def __init__(self, step: str, message: str):
        super().__init__(f"Failed to provision {step}: {message}")
        self.step = step


class WorkspaceProvisioningError(ProvisioningError):
    def __init__(self, message: str):
        super().__init__("workspace", message)


def _placeholder(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}"


@dataclass
class SyncJobResult:
    job_id: str
    status: str = "running"


@dataclass
class FullSyncResult:
    """Outcome of the idempotent provisioning chain."""
    project_id: str
    provider: str
    connection_id: str
    job_id: str

    def to_response(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "connectionId": self.connection_id,
            "jobId": self.job_id,
            "provider": self.provider,
            "projectId": self.project_id,
        }


@dataclass
class DirectSyncResult:
    """Outcome of the always-create WooCommerce flow."""
    source_id: str
    destination_id: str
    connection_id: str
    job_id: str

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "source_id": self.source_id,
            "destination_id": self.destination_id,
            "connection_id": self.connection_id,
            "job_id": self.job_id,
            "message": "Sync started successfully",
        }


class ProjectSyncOrchestrator:
    """
    Orchestrates Airbyte provisioning and syncs for the session user.

    SECURITY: constructed with the verified session context; every flow
    checks project ownership before touching tokens or Airbyte.
    """

    def __init__(
        self,
        db_session: Session,
        ctx: SessionContext,
        airbyte_client: Optional[AirbyteClient] = None,
        definitions: Optional[DefinitionStore] = None,
    ):
        """
        Args:
            db_session: SQLAlchemy database session
            ctx: Verified session context
            airbyte_client: Optional client (default: from environment)
            definitions: Optional definition cache (default: bundled files)

        Raises:
            ValueError: If ctx is missing
        """
        if ctx is None or not ctx.user_id:
            raise ValueError("session context is required")

        self.db = db_session
        self.ctx = ctx
        self._airbyte_client = airbyte_client
        self._definitions = definitions or DefinitionStore()

    def _get_client(self) -> AirbyteClient:
        if self._airbyte_client is None:
            self._airbyte_client = get_airbyte_client()
        return self._airbyte_client

    @property
    def allow_placeholders(self) -> bool:
        """Development fallbacks are disabled in production."""
        return not is_production()

    # =========================================================================
    # Preconditions
    # =========================================================================

    def authorize_project(self, project_id: str) -> Project:
        return require_owned_project(self.db, project_id, self.ctx.user_id)

    async def load_credentials(self, project_id: str, provider: Provider) -> ProviderCredentials:
        """
        Decrypt the project's active token for provider.

        Raises:
            TokenNotFoundError: No active token
        """
        token = ExternalTokensRepository(self.db, project_id).get_active_for_provider(provider.value)
        if token is None:
            raise TokenNotFoundError(project_id, provider.value)
        return await load_provider_credentials(token)

    async def _prepare(self, project_id: str, provider_value: str):
        provider = normalize_provider(provider_value)
        project = self.authorize_project(project_id)
        credentials = await self.load_credentials(project.id, provider)
        source_config = build_source_config(credentials)
        return provider, project, source_config

    # =========================================================================
    # Idempotent provisioning steps
    # =========================================================================

    async def ensure_workspace(self, user: User) -> str:
        """Return the user's workspace id, creating the workspace on first use."""
        if user.workspace_id:
            return user.workspace_id
        if not self.ctx.email:
            raise MissingEmailError()

        client = self._get_client()
        if not client.has_credentials:
            workspace_id = _placeholder("dev-workspace")
            logger.warning(
                "Airbyte credentials not configured, using placeholder workspace",
                extra={"user_id": user.id, "workspace_id": workspace_id},
            )
        else:
            try:
                workspace = await client.create_workspace(
                    name=f"Workspace - {user.email}",
                    email=user.email,
                )
            except AirbyteError as e:
                logger.error(
                    "Workspace creation failed",
                    extra={"user_id": user.id, "error": e.message},
                )
                raise WorkspaceProvisioningError(e.message)
            workspace_id = workspace.workspace_id

        user.workspace_id = workspace_id
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to store workspace id",
                extra={"user_id": user.id, "error": str(e)},
            )
            raise

        logger.info("Workspace ready", extra={"user_id": user.id, "workspace_id": workspace_id})
        return workspace_id

    async def _resolve_definition(
        self,
        name: str,
        kind: str,
        workspace_id: Optional[str] = None,
    ) -> Optional[ConnectorDefinition]:
        """Look up a definition in the local cache, then on the API."""
        client = self._get_client()
        if kind == "source":
            cached = self._definitions.get_source_definition(name)
            if cached:
                return cached
            definitions = await client.list_source_definitions(workspace_id)
        else:
            cached = self._definitions.get_destination_definition(name)
            if cached:
                return cached
            definitions = await client.list_destination_definitions(workspace_id)

        wanted = name.lower()
        for definition in definitions:
            if definition.name.lower() == wanted:
                return definition
        return None

    async def _source_definition_id(self, provider: Provider) -> str:
        name = SOURCE_DEFINITION_NAMES[provider]
        definition = await self._resolve_definition(name, "source")
        if definition:
            return definition.definition_id
        if provider == Provider.WOOCOMMERCE:
            logger.warning("WooCommerce definition not found, using placeholder definition")
            return MOCK_WOOCOMMERCE_DEFINITION_ID
        raise AirbyteNotFoundError(
            message=f"Source definition not found: {name}",
            resource_type="source_definition",
            resource_id=name,
        )

    async def _destination_definition_id(self, workspace_id: Optional[str] = None) -> str:
        definition = await self._resolve_definition(
            DESTINATION_DEFINITION_NAME, "destination", workspace_id
        )
        if definition:
            return definition.definition_id
        if self.allow_placeholders:
            logger.warning("Postgres definition not found, using placeholder definition")
            return MOCK_POSTGRES_DEFINITION_ID
        raise AirbyteNotFoundError(
            message=f"Destination definition not found: {DESTINATION_DEFINITION_NAME}",
            resource_type="destination_definition",
            resource_id=DESTINATION_DEFINITION_NAME,
        )

    async def _list_existing(self, lister, workspace_id: str, kind: str, project_id: str) -> list:
        """List existing objects; a failed listing falls through to creation."""
        try:
            return await lister(workspace_id)
        except AirbyteError as e:
            logger.warning(
                f"Could not list existing {kind}, trying to create a new one",
                extra={"project_id": project_id, "workspace_id": workspace_id, "error": e.message},
            )
            return []

    async def ensure_project_source(
        self,
        workspace_id: str,
        project_id: str,
        provider: Provider,
        configuration: Dict[str, Any],
    ) -> str:
        """Reuse or create the source named "<PROVIDER> - Project <id>"."""
        client = self._get_client()
        if not client.has_credentials or is_placeholder_id(workspace_id):
            return _placeholder("dev-source")

        name = f"{provider.value.upper()} - Project {project_id}"
        for source in await self._list_existing(client.list_sources, workspace_id, "sources", project_id):
            if source.name == name:
                logger.info(
                    "Reusing existing source",
                    extra={"project_id": project_id, "source_id": source.source_id},
                )
                return source.source_id

        try:
            definition_id = await self._source_definition_id(provider)
            if is_placeholder_id(definition_id):
                return _placeholder("mock-source")

            source = await client.create_source(
                workspace_id=workspace_id,
                source_definition_id=definition_id,
                name=name,
                configuration=configuration,
            )
            return source.source_id

        except AirbyteError as e:
            logger.error(
                "Source provisioning failed",
                extra={
                    "project_id": project_id,
                    "provider": provider.value,
                    "error": e.message,
                    "configuration": redact_secrets(configuration),
                },
            )
            if self.allow_placeholders:
                return _placeholder("dev-source-error")
            raise ProvisioningError("source", e.message)

    async def ensure_project_destination(self, workspace_id: str, project_id: str) -> str:
        """Reuse or create the destination named "Supabase - Project <id>"."""
        client = self._get_client()
        if not client.has_credentials or is_placeholder_id(workspace_id):
            return _placeholder("dev-destination")

        name = f"Supabase - Project {project_id}"
        configuration = build_postgres_destination_config(project_id=project_id)
        for destination in await self._list_existing(
            client.list_destinations, workspace_id, "destinations", project_id
        ):
            if destination.name == name:
                logger.info(
                    "Reusing existing destination",
                    extra={"project_id": project_id, "destination_id": destination.destination_id},
                )
                return destination.destination_id

        try:
            definition_id = await self._destination_definition_id()
            if is_placeholder_id(definition_id):
                return _placeholder("mock-destination")

            destination = await client.create_destination(
                workspace_id=workspace_id,
                destination_definition_id=definition_id,
                name=name,
                configuration=configuration,
            )
            return destination.destination_id

        except AirbyteError as e:
            logger.error(
                "Destination provisioning failed",
                extra={
                    "project_id": project_id,
                    "error": e.message,
                    "configuration": redact_secrets(configuration),
                },
            )
            if self.allow_placeholders:
                return _placeholder("dev-destination-error")
            raise ProvisioningError("destination", e.message)

    async def _discover_catalog(self, source_id: str) -> Dict[str, Any]:
        catalog = await self._get_client().discover_schema(source_id)
        if catalog.get("streams"):
            return configure_sync_catalog(catalog)

        if self.allow_placeholders:
            logger.warning(
                "No streams discovered, using placeholder catalog",
                extra={"source_id": source_id},
            )
            return configure_sync_catalog(placeholder_catalog())
        raise ProvisioningError("connection", "No streams discovered for source")

    async def ensure_project_connection(
        self,
        workspace_id: str,
        source_id: str,
        destination_id: str,
        project_id: str,
    ) -> str:
        """Reuse the connection linking source to destination, or create it."""
        if is_placeholder_id(source_id) or is_placeholder_id(destination_id):
            return _placeholder("dev-connection")

        client = self._get_client()
        for connection in await self._list_existing(
            client.list_connections, workspace_id, "connections", project_id
        ):
            if connection.source_id == source_id and connection.destination_id == destination_id:
                logger.info(
                    "Reusing existing connection",
                    extra={"project_id": project_id, "connection_id": connection.connection_id},
                )
                return connection.connection_id

        try:
            sync_catalog = await self._discover_catalog(source_id)
            connection = await client.create_connection(
                source_id=source_id,
                destination_id=destination_id,
                name=f"Connection {source_id} to {destination_id} - Project {project_id}",
                sync_catalog=sync_catalog,
            )
            return connection.connection_id

        except AirbyteError as e:
            logger.error(
                "Connection provisioning failed",
                extra={"project_id": project_id, "source_id": source_id, "error": e.message},
            )
            if self.allow_placeholders:
                return _placeholder("dev-connection-error")
            raise ProvisioningError("connection", e.message)

    async def sync_project_connection(
        self,
        connection_id: str,
        project_id: str,
        provider: Provider,
    ) -> SyncJobResult:
        """
        Start a sync and record it on airbyte_connections.

        A failure to record the sync state is logged and does not fail the
        sync that was already started.
        """
        if not connection_id:
            raise ValueError("connection_id is required")
        if not project_id:
            raise ValueError("project_id is required")

        if is_placeholder_id(connection_id):
            return SyncJobResult(job_id=_placeholder("mock-job"))

        try:
            job = await self._get_client().trigger_sync(connection_id)
        except AirbyteError as e:
            logger.error(
                "Sync trigger failed",
                extra={"project_id": project_id, "connection_id": connection_id, "error": e.message},
            )
            if self.allow_placeholders:
                return SyncJobResult(job_id=_placeholder("error-recovery-job"))
            raise ProvisioningError("sync", e.message)

        try:
            SyncConnectionsRepository(self.db, project_id).upsert_sync_state(
                provider=provider.value,
                connection_id=connection_id,
            )
        except SQLAlchemyError as e:
            logger.warning(
                "Sync started but its state could not be stored",
                extra={"project_id": project_id, "job_id": job.job_id, "error": str(e)},
            )

        return SyncJobResult(job_id=job.job_id, status=job.status.value)

    # =========================================================================
    # Flows
    # =========================================================================

    async def run_full_sync(self, project_id: str, provider_value: str) -> FullSyncResult:
        """
        Idempotent chain: workspace, source, destination, connection, sync.

        Raises:
            UnsupportedProviderError, ProjectAccessError, TokenNotFoundError,
            InvalidCredentialsError, ProvisioningError, MissingEmailError
        """
        if not self.ctx.email:
            raise MissingEmailError()
        provider, project, source_config = await self._prepare(project_id, provider_value)
        user = ensure_user_exists(self.db, self.ctx)

        workspace_id = await self.ensure_workspace(user)
        source_id = await self.ensure_project_source(workspace_id, project.id, provider, source_config)
        destination_id = await self.ensure_project_destination(workspace_id, project.id)
        connection_id = await self.ensure_project_connection(
            workspace_id, source_id, destination_id, project.id
        )
        job = await self.sync_project_connection(connection_id, project.id, provider)

        logger.info(
            "Full sync started",
            extra={
                "project_id": project.id,
                "provider": provider.value,
                "connection_id": connection_id,
                "job_id": job.job_id,
            },
        )
        return FullSyncResult(
            project_id=project.id,
            provider=provider.value,
            connection_id=connection_id,
            job_id=job.job_id,
        )

    async def run_direct_sync(self, project_id: str, provider_value: str) -> DirectSyncResult:
        """
        Create source, destination and connection, then start a sync.

        Only WooCommerce is supported by this flow. The provisioned ids are
        recorded on airbyte_connections and the job on airbyte_sync_logs.
        """
        provider, project, source_config = await self._prepare(project_id, provider_value)
        if provider != Provider.WOOCOMMERCE:
            raise UnsupportedProviderError(provider.value)

        user = ensure_user_exists(self.db, self.ctx)
        workspace_id = await self.ensure_workspace(user)
        client = self._get_client()

        try:
            source = await client.create_source(
                workspace_id=workspace_id,
                source_definition_id=WOOCOMMERCE_SOURCE_DEFINITION_ID,
                name=f"WooCommerce - Project {project.id}",
                configuration=source_config,
            )
        except AirbyteError as e:
            raise ProvisioningError("source", e.message)

        try:
            destination = await client.create_destination(
                workspace_id=workspace_id,
                destination_definition_id=await self._destination_definition_id(),
                name=f"Supabase - Project {project.id}",
                configuration=build_postgres_destination_config(project_id=project.id),
            )
        except AirbyteError as e:
            raise ProvisioningError("destination", e.message)

        try:
            connection = await client.create_connection(
                source_id=source.source_id,
                destination_id=destination.destination_id,
                name=f"WooCommerce - Project {project.id}",
                sync_catalog=await self._discover_catalog(source.source_id),
            )
        except AirbyteError as e:
            raise ProvisioningError("connection", e.message)

        SyncConnectionsRepository(self.db, project.id).record_connection(
            provider=provider.value,
            connection_id=connection.connection_id,
            source_id=source.source_id,
            destination_id=destination.destination_id,
            user_id=self.ctx.user_id,
        )

        try:
            job = await client.trigger_sync(connection.connection_id)
        except AirbyteError as e:
            raise ProvisioningError("sync", e.message)

        SyncLogsRepository(self.db, project.id).log_job(
            provider=provider.value,
            job_id=job.job_id,
            user_id=self.ctx.user_id,
        )

        return DirectSyncResult(
            source_id=source.source_id,
            destination_id=destination.destination_id,
            connection_id=connection.connection_id,
            job_id=job.job_id,
        )

    async def run_woocommerce_sync(self, project_id: str) -> str:
        """
        Find-or-create the WooCommerce pipeline in the instance's first workspace.

        Data lands in the public schema with a per-project table prefix.

        Returns:
            The started job id
        """
        provider, project, source_config = await self._prepare(project_id, Provider.WOOCOMMERCE.value)
        client = self._get_client()
        destination_config = build_postgres_destination_config(schema="public", require_password=True)

        try:
            workspaces = await client.list_workspaces()
            if workspaces:
                workspace_id = workspaces[0].workspace_id
            else:
                workspace_id = await self.ensure_workspace(ensure_user_exists(self.db, self.ctx))

            source_name = f"WooCommerce - Projeto {project.id}"
            destination_name = f"Supabase Destination - Projeto {project.id}"
            connection_name = f"WooCommerce to Supabase - Projeto {project.id}"

            source_id = next(
                (s.source_id for s in await client.list_sources(workspace_id) if s.name == source_name),
                None,
            )
            if source_id is None:
                definition = await self._resolve_definition(
                    SOURCE_DEFINITION_NAMES[Provider.WOOCOMMERCE], "source", workspace_id
                )
                source_id = (await client.create_source(
                    workspace_id=workspace_id,
                    source_definition_id=definition.definition_id if definition else WOOCOMMERCE_SOURCE_DEFINITION_ID,
                    name=source_name,
                    configuration=source_config,
                )).source_id

            destination_id = next(
                (d.destination_id for d in await client.list_destinations(workspace_id)
                 if d.name == destination_name),
                None,
            )
            if destination_id is None:
                destination_id = (await client.create_destination(
                    workspace_id=workspace_id,
                    destination_definition_id=await self._destination_definition_id(workspace_id),
                    name=destination_name,
                    configuration=destination_config,
                )).destination_id

            connection_id = next(
                (c.connection_id for c in await client.list_connections(workspace_id)
                 if c.name == connection_name),
                None,
            )
            if connection_id is None:
                connection_id = (await client.create_connection(
                    source_id=source_id,
                    destination_id=destination_id,
                    name=connection_name,
                    sync_catalog=await self._discover_catalog(source_id),
                    prefix=f"woo_{project.id.replace('-', '_')}_",
                )).connection_id

            job = await client.trigger_sync(connection_id)

        except AirbyteError as e:
            logger.error(
                "WooCommerce sync failed",
                extra={"project_id": project.id, "error": e.message, "endpoint": e.endpoint},
            )
            raise ProvisioningError(e.endpoint or "sync", e.message)

        SyncLogsRepository(self.db, project.id).log_job(
            provider=provider.value,
            job_id=job.job_id,
            user_id=self.ctx.user_id,
        )
        return job.job_id
