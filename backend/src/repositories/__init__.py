"""Repository layer with scope isolation enforcement."""

from src.repositories.base_repo import (
    BaseRepository,
    ScopeIsolationError,
)
from src.repositories.projects_repo import ProjectsRepository, find_project
from src.repositories.external_tokens import ExternalTokensRepository
from src.repositories.airbyte_connections import SyncConnectionsRepository
from src.repositories.sync_logs import SyncLogsRepository

__all__ = [
    "BaseRepository",
    "ScopeIsolationError",
    "ProjectsRepository",
    "find_project",
    "ExternalTokensRepository",
    "SyncConnectionsRepository",
    "SyncLogsRepository",
]
