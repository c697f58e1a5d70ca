"""
Project ownership dependencies.

Centralizes the "does this project exist and belong to the caller" check
shared by the connections, sync and data routes.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from src.models.project import Project
from src.platform.session_context import SessionContext
from src.services.project_access import (
    ProjectAccessError,
    require_owned_project,
)

logger = logging.getLogger(__name__)


def require_project_id(project_id: str) -> str:
    """400 when the request did not name a project."""
    if not project_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="project_id is required",
        )
    return project_id


def get_owned_project_or_raise(
    db_session: Session,
    project_id: str,
    ctx: SessionContext,
) -> Project:
    """
    Load the caller's project or raise the matching HTTP error.

    404 when the project does not exist, 403 when another user owns it.
    """
    require_project_id(project_id)
    try:
        return require_owned_project(db_session, project_id, ctx.user_id)
    except ProjectAccessError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
