"""
Sync API routes for provisioning and triggering data syncs.

Provides:
- POST /api/airbyte/full-sync: Idempotent provisioning chain + sync
- POST /api/airbyte/sync: Always-create WooCommerce pipeline + sync
- POST /api/airbyte/woocommerce-sync: WooCommerce pipeline in the shared workspace

SECURITY: All routes require a valid session; syncs are limited to the
caller's own projects.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.constants.providers import UnsupportedProviderError
from src.database.session import get_db_session
from src.integrations.airbyte.client import AirbyteClient, get_airbyte_client
from src.integrations.airbyte.exceptions import AirbyteError
from src.platform.session_context import SessionContext, get_session_context
from src.services.connector_configs import ConnectorConfigError, DestinationConfigError
from src.services.project_access import ProjectAccessError
from src.services.sync_orchestrator import ProjectSyncOrchestrator, SyncOrchestratorError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/airbyte", tags=["sync"])


# Request/Response models

class SyncRequest(BaseModel):
    project_id: Optional[str] = None
    provider: Optional[str] = None


class FullSyncResponse(BaseModel):
    status: str
    connectionId: str
    jobId: str
    provider: str
    projectId: str


class DirectSyncResponse(BaseModel):
    success: bool
    source_id: str
    destination_id: str
    connection_id: str
    job_id: str
    message: str


class WooCommerceSyncResponse(BaseModel):
    message: str
    jobId: str


# Dependencies

async def get_request_airbyte_client():
    """Airbyte client for one request, closed afterwards."""
    client = get_airbyte_client()
    try:
        yield client
    finally:
        await client.close()


def get_project_sync_orchestrator(
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
    airbyte_client: AirbyteClient = Depends(get_request_airbyte_client),
) -> ProjectSyncOrchestrator:
    """Orchestrator bound to the session user."""
    return ProjectSyncOrchestrator(db_session, ctx, airbyte_client=airbyte_client)


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} is required",
        )
    return value


def _to_http_error(e: Exception, project_id: str) -> HTTPException:
    """Map service errors onto HTTP status codes."""
    if isinstance(e, UnsupportedProviderError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, ProjectAccessError):
        return HTTPException(status_code=e.status_code, detail=str(e))
    if isinstance(e, DestinationConfigError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    if isinstance(e, ConnectorConfigError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, SyncOrchestratorError):
        return HTTPException(status_code=e.status_code, detail=str(e))

    message = e.message if isinstance(e, AirbyteError) else str(e)
    logger.error(
        "Sync failed",
        extra={"project_id": project_id, "error": message, "error_type": type(e).__name__},
    )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


_SYNC_ERRORS = (
    UnsupportedProviderError,
    ProjectAccessError,
    ConnectorConfigError,
    SyncOrchestratorError,
    AirbyteError,
)


# Routes

@router.post("/full-sync", response_model=FullSyncResponse)
async def full_sync(
    body: SyncRequest,
    orchestrator: ProjectSyncOrchestrator = Depends(get_project_sync_orchestrator),
):
    """
    Provision (or reuse) workspace, source, destination and connection,
    then start a sync.
    """
    project_id = _require(body.project_id, "project_id")
    provider = _require(body.provider, "provider")

    logger.info(
        "Full sync requested",
        extra={"project_id": project_id, "provider": provider, "user_id": orchestrator.ctx.user_id},
    )

    try:
        result = await orchestrator.run_full_sync(project_id, provider)
    except _SYNC_ERRORS as e:
        raise _to_http_error(e, project_id)

    return FullSyncResponse(**result.to_response())


@router.post("/sync", response_model=DirectSyncResponse)
async def direct_sync(
    body: SyncRequest,
    orchestrator: ProjectSyncOrchestrator = Depends(get_project_sync_orchestrator),
):
    """Create a fresh WooCommerce source, destination and connection, then sync."""
    project_id = _require(body.project_id, "project_id")
    provider = _require(body.provider, "provider")

    try:
        result = await orchestrator.run_direct_sync(project_id, provider)
    except _SYNC_ERRORS as e:
        raise _to_http_error(e, project_id)

    return DirectSyncResponse(**result.to_response())


@router.post("/woocommerce-sync", response_model=WooCommerceSyncResponse)
async def woocommerce_sync(
    body: SyncRequest,
    orchestrator: ProjectSyncOrchestrator = Depends(get_project_sync_orchestrator),
):
    """Sync a project's WooCommerce store into the shared public schema."""
    project_id = _require(body.project_id, "project_id")

    try:
        job_id = await orchestrator.run_woocommerce_sync(project_id)
    except _SYNC_ERRORS as e:
        raise _to_http_error(e, project_id)

    return WooCommerceSyncResponse(
        message=f"Sync started successfully. Job ID: {job_id}",
        jobId=job_id,
    )
