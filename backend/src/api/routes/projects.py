"""
Project API routes.

Provides:
- POST /api/projects: Create a project for the session user
- GET /api/projects: List the session user's projects
- GET /api/projects/{project_id}/sync-status: Active sync connections
- GET /api/providers: Provider catalog

SECURITY: project routes require a valid session; projects are always
scoped to the session user.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.api.dependencies.projects import get_owned_project_or_raise
from src.constants.providers import PROVIDER_CATALOG
from src.database.session import get_db_session
from src.models.airbyte_connection import SyncConnectionStatus
from src.platform.session_context import SessionContext, get_session_context
from src.repositories.airbyte_connections import SyncConnectionsRepository
from src.repositories.projects_repo import ProjectsRepository
from src.repositories.sync_logs import SyncLogsRepository
from src.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])
providers_router = APIRouter(prefix="/api/providers", tags=["projects"])


# Request/Response models

class CreateProjectRequest(BaseModel):
    name: Optional[str] = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    user_id: str
    schema_name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProviderResponse(BaseModel):
    id: str
    name: str
    description: str
    auth_url: str
    auth_type: str


class SyncConnectionResponse(BaseModel):
    id: str
    provider: str
    connection_id: Optional[str] = None
    source_id: Optional[str] = None
    destination_id: Optional[str] = None
    status: str
    last_sync_at: Optional[str] = None


class SyncStatusResponse(BaseModel):
    project_id: str
    connections: List[SyncConnectionResponse]
    last_sync_at: Optional[str] = None
    last_job_id: Optional[str] = None
    last_job_status: Optional[str] = None


# Routes

@router.post("", response_model=ProjectResponse)
async def create_project(
    body: CreateProjectRequest,
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """Create a project owned by the session user."""
    name = (body.name or "").strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Project name is required",
        )

    ensure_user_exists(db_session, ctx)
    project = ProjectsRepository(db_session, ctx.user_id).create_project(name)
    return ProjectResponse(**project.to_dict())


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """List the session user's projects, newest first."""
    projects = ProjectsRepository(db_session, ctx.user_id).list_projects()
    return [ProjectResponse(**project.to_dict()) for project in projects]


@router.get("/{project_id}/sync-status", response_model=SyncStatusResponse)
async def get_sync_status(
    project_id: str,
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """
    Sync state of a project: its active connections and the latest job.

    Connections that are currently syncing count as active.
    """
    project = get_owned_project_or_raise(db_session, project_id, ctx)

    repo = SyncConnectionsRepository(db_session, project.id)
    connections = [
        c for c in repo.list_connections()
        if c.status in (SyncConnectionStatus.ACTIVE.value, SyncConnectionStatus.SYNCING.value)
    ]
    latest = SyncLogsRepository(db_session, project.id).latest()

    last_sync_at = None
    if latest and latest.started_at:
        last_sync_at = latest.started_at.isoformat()
    else:
        synced = [c.last_sync_at for c in connections if c.last_sync_at]
        if synced:
            last_sync_at = max(synced).isoformat()

    return SyncStatusResponse(
        project_id=project.id,
        connections=[SyncConnectionResponse(**c.to_dict()) for c in connections],
        last_sync_at=last_sync_at,
        last_job_id=latest.job_id if latest else None,
        last_job_status=latest.status if latest else None,
    )


@providers_router.get("", response_model=List[ProviderResponse])
async def list_providers():
    """Providers a project can connect (no authentication)."""
    return [ProviderResponse(**provider) for provider in PROVIDER_CATALOG]
