"""
ProjectSyncConnection model - maps a project's provider to its sync objects.

Stores the source, destination and connection ids provisioned on the sync
platform for one (project_id, provider) pair, plus the latest sync state.
"""

import enum

from sqlalchemy import Column, String, DateTime, Index, UniqueConstraint

from src.db_base import Base
from src.models.base import TimestampMixin, ProjectScopedMixin, generate_uuid


class SyncConnectionStatus(str, enum.Enum):
    """Sync connection status enumeration."""
    ACTIVE = "active"
    SYNCING = "syncing"
    INACTIVE = "inactive"
    FAILED = "failed"


class ProjectSyncConnection(Base, TimestampMixin, ProjectScopedMixin):
    """
    Sync platform objects provisioned for a project's provider.

    Attributes:
        id: Primary key (UUID)
        project_id: Owning project
        provider: Provider id
        user_id: User who triggered provisioning
        source_id: Sync platform source id
        destination_id: Sync platform destination id
        connection_id: Sync platform connection id
        status: active / syncing / inactive / failed
        last_sync_at: When the last sync job was started
    """

    __tablename__ = "airbyte_connections"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )
    provider = Column(String(50), nullable=False)
    user_id = Column(String(255), nullable=True, index=True)
    source_id = Column(String(255), nullable=True)
    destination_id = Column(String(255), nullable=True)
    connection_id = Column(String(255), nullable=False, index=True)
    status = Column(
        String(50),
        nullable=False,
        default=SyncConnectionStatus.ACTIVE.value,
        index=True
    )
    last_sync_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp of the last triggered sync"
    )

    __table_args__ = (
        UniqueConstraint("project_id", "provider", name="uq_airbyte_connections_project_provider"),
        Index("ix_airbyte_connections_project_status", "project_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProjectSyncConnection("
            f"id={self.id}, "
            f"project_id={self.project_id}, "
            f"provider={self.provider}, "
            f"connection_id={self.connection_id}"
            f")>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in (
            SyncConnectionStatus.ACTIVE.value,
            SyncConnectionStatus.SYNCING.value,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "provider": self.provider,
            "source_id": self.source_id,
            "destination_id": self.destination_id,
            "connection_id": self.connection_id,
            "status": self.status,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
        }
