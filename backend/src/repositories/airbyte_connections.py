"""
Repository for the sync platform objects provisioned per project.

Scoped by project_id. Rows are unique per (project_id, provider).
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy.exc import SQLAlchemyError

from src.repositories.base_repo import BaseRepository
from src.models.airbyte_connection import ProjectSyncConnection, SyncConnectionStatus

logger = logging.getLogger(__name__)


class SyncConnectionsRepository(BaseRepository[ProjectSyncConnection]):
    """Sync connections scoped to a project."""

    def _get_model_class(self) -> type[ProjectSyncConnection]:
        return ProjectSyncConnection

    def _get_scope_column_name(self) -> str:
        return "project_id"

    def get_for_provider(self, provider: str) -> Optional[ProjectSyncConnection]:
        return self._query().filter(ProjectSyncConnection.provider == provider).first()

    def list_connections(
        self,
        status: Optional[SyncConnectionStatus] = None
    ) -> List[ProjectSyncConnection]:
        """List the project's connections, newest first, optionally by status."""
        query = self._query()
        if status is not None:
            query = query.filter(ProjectSyncConnection.status == status.value)
        return query.order_by(ProjectSyncConnection.created_at.desc()).all()

    def record_connection(
        self,
        provider: str,
        connection_id: str,
        source_id: Optional[str] = None,
        destination_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: SyncConnectionStatus = SyncConnectionStatus.ACTIVE,
    ) -> ProjectSyncConnection:
        """Store freshly provisioned ids, replacing any previous row for the provider."""
        fields = {
            "connection_id": connection_id,
            "source_id": source_id,
            "destination_id": destination_id,
            "user_id": user_id,
            "status": status.value,
        }
        existing = self.get_for_provider(provider)
        if existing:
            return self.update(existing.id, fields)
        return self.create({"provider": provider, **fields})

    def upsert_sync_state(
        self,
        provider: str,
        connection_id: str,
        synced_at: Optional[datetime] = None,
    ) -> ProjectSyncConnection:
        """Mark the provider's connection as syncing and stamp last_sync_at."""
        synced_at = synced_at or datetime.now(timezone.utc)
        existing = self.get_for_provider(provider)

        try:
            if existing:
                existing.connection_id = connection_id
                existing.status = SyncConnectionStatus.SYNCING.value
                existing.last_sync_at = synced_at
                entity = existing
            else:
                entity = ProjectSyncConnection(
                    project_id=self.scope_id,
                    provider=provider,
                    connection_id=connection_id,
                    status=SyncConnectionStatus.SYNCING.value,
                    last_sync_at=synced_at,
                )
                self.db_session.add(entity)
            self.db_session.commit()
            self.db_session.refresh(entity)
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(
                "Failed to store sync state",
                extra={"project_id": self.scope_id, "provider": provider, "error": str(e)}
            )
            raise

        return entity
