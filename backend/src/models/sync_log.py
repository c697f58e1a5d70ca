"""
SyncLog model - one row per sync job started for a project.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Index, func

from src.db_base import Base
from src.models.base import ProjectScopedMixin, generate_uuid


class SyncLogStatus(str, enum.Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SyncLog(Base, ProjectScopedMixin):
    """
    Record of a triggered sync job.

    Attributes:
        id: Primary key (UUID)
        project_id: Owning project
        provider: Provider id
        job_id: Sync platform job id
        status: running / succeeded / failed
        started_at: When the job was triggered
        user_id: User who triggered it
    """

    __tablename__ = "airbyte_sync_logs"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )
    provider = Column(String(50), nullable=False)
    job_id = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default=SyncLogStatus.RUNNING.value)
    started_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    user_id = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        Index("ix_airbyte_sync_logs_project_started", "project_id", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<SyncLog(project_id={self.project_id}, job_id={self.job_id}, status={self.status})>"
