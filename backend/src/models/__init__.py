"""
Database models for projects, provider tokens and sync state.

Project-owned models inherit from ProjectScopedMixin.
"""

from src.models.base import TimestampMixin, ProjectScopedMixin
from src.models.user import User
from src.models.project import Project, project_schema_name
from src.models.external_token import ExternalToken, TokenStatus
from src.models.airbyte_connection import ProjectSyncConnection, SyncConnectionStatus
from src.models.sync_log import SyncLog, SyncLogStatus

__all__ = [
    "TimestampMixin",
    "ProjectScopedMixin",
    "User",
    "Project",
    "project_schema_name",
    "ExternalToken",
    "TokenStatus",
    "ProjectSyncConnection",
    "SyncConnectionStatus",
    "SyncLog",
    "SyncLogStatus",
]
