"""Repository for sync job history of a project."""

import logging
from datetime import datetime, timezone
from typing import Optional

from src.repositories.base_repo import BaseRepository
from src.models.sync_log import SyncLog, SyncLogStatus

logger = logging.getLogger(__name__)


class SyncLogsRepository(BaseRepository[SyncLog]):

    def _get_model_class(self) -> type[SyncLog]:
        return SyncLog

    def _get_scope_column_name(self) -> str:
        return "project_id"

    def log_job(
        self,
        provider: str,
        job_id: str,
        user_id: Optional[str] = None,
        status: SyncLogStatus = SyncLogStatus.RUNNING,
    ) -> SyncLog:
        return self.create({
            "provider": provider,
            "job_id": str(job_id),
            "status": status.value,
            "started_at": datetime.now(timezone.utc),
            "user_id": user_id,
        })

    def latest(self, provider: Optional[str] = None) -> Optional[SyncLog]:
        """Most recently started job, optionally for one provider."""
        query = self._query()
        if provider:
            query = query.filter(SyncLog.provider == provider)
        return query.order_by(SyncLog.started_at.desc()).first()
