"""
Airbyte integration for provisioning and syncing project data.

This module provides a client for the Airbyte configuration API and a
local cache of connector definitions.
"""

from src.integrations.airbyte.client import (
    AirbyteClient,
    get_airbyte_client,
    invalidate_token_cache,
    is_docker_environment,
)
from src.integrations.airbyte.definitions import DefinitionStore
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
    AirbyteJobStatus,
    is_placeholder_id,
)

__all__ = [
    # Client
    "AirbyteClient",
    "get_airbyte_client",
    "invalidate_token_cache",
    "is_docker_environment",
    "DefinitionStore",
    # Exceptions
    "AirbyteError",
    "AirbyteAuthenticationError",
    "AirbyteRateLimitError",
    "AirbyteConnectionError",
    "AirbyteNotFoundError",
    "AirbyteSyncError",
    # Models
    "AirbyteHealth",
    "AirbyteWorkspace",
    "ConnectorDefinition",
    "AirbyteSource",
    "AirbyteDestination",
    "AirbyteConnection",
    "AirbyteJob",
    "AirbyteJobStatus",
    "is_placeholder_id",
]
