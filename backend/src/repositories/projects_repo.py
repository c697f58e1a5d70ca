"""
Repository for user-owned projects.

Scoped by user_id: a user can only ever see or create their own projects.
"""

import logging
from typing import Optional, List

from src.repositories.base_repo import BaseRepository
from src.models.project import Project

logger = logging.getLogger(__name__)


class ProjectsRepository(BaseRepository[Project]):
    """Projects scoped to the session user."""

    def _get_model_class(self) -> type[Project]:
        return Project

    def _get_scope_column_name(self) -> str:
        return "user_id"

    def list_projects(self, limit: Optional[int] = None) -> List[Project]:
        """List the user's projects, newest first."""
        query = self._query().order_by(Project.created_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def create_project(self, name: str) -> Project:
        project = self.create({"name": name.strip()})
        logger.info(
            "Project created",
            extra={"user_id": self.scope_id, "project_id": project.id}
        )
        return project

    def get_owned(self, project_id: str) -> Optional[Project]:
        """Return the project when it exists and belongs to the user."""
        return self.get_by_id(project_id)


def find_project(db_session, project_id: str) -> Optional[Project]:
    """
    Unscoped lookup by id.

    Only used to tell "project does not exist" (404) apart from
    "project belongs to someone else" (403).
    """
    return db_session.query(Project).filter(Project.id == project_id).first()
