"""
Project ownership checks shared by every project-scoped route.
"""

import logging

from sqlalchemy.orm import Session

from src.models.project import Project
from src.repositories.projects_repo import find_project

logger = logging.getLogger(__name__)


class ProjectAccessError(Exception):
    """Base exception for project access failures."""
    status_code = 403


class ProjectNotFoundError(ProjectAccessError):
    status_code = 404

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ProjectForbiddenError(ProjectAccessError):
    status_code = 403

    def __init__(self, project_id: str):
        super().__init__("You do not have access to this project")
        self.project_id = project_id


def require_owned_project(db_session: Session, project_id: str, user_id: str) -> Project:
    """
    Return the project if it exists and belongs to user_id.

    Raises:
        ProjectNotFoundError: No project with this id
        ProjectForbiddenError: The project belongs to another user
    """
    project = find_project(db_session, project_id) if project_id else None
    if project is None:
        raise ProjectNotFoundError(project_id)

    if project.user_id != user_id:
        logger.warning(
            "Project access denied",
            extra={"project_id": project_id, "user_id": user_id}
        )
        raise ProjectForbiddenError(project_id)

    return project
