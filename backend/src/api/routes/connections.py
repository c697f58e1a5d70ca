"""
Provider connection API routes.

Provides:
- GET /api/connections/list: Connections of a project
- POST /api/connections/woocommerce: Store WooCommerce API keys
- GET /api/tokens: Stored tokens of a project, without credentials

SECURITY: All routes require a valid session and ownership of the project.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.api.dependencies.projects import get_owned_project_or_raise
from src.database.session import get_db_session
from src.platform.session_context import SessionContext, get_session_context
from src.repositories.external_tokens import ExternalTokensRepository
from src.services.connections_service import (
    ProviderConnectionError,
    list_project_connections,
    save_woocommerce_credentials,
)
from src.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/connections", tags=["connections"])
tokens_router = APIRouter(prefix="/api/tokens", tags=["connections"])


# Request/Response models

class WooCommerceCredentialsRequest(BaseModel):
    store_url: Optional[str] = None
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    project_id: Optional[str] = None
    verify: bool = False


class ConnectionDetails(BaseModel):
    store_url: Optional[str] = None
    google_ads_account: Optional[str] = None
    meta_business_name: Optional[str] = None


class ConnectionResponse(BaseModel):
    id: str
    provider: str
    status: str
    details: ConnectionDetails
    lastModified: Optional[str] = None
    provider_user_id: Optional[str] = None
    provider_account_name: Optional[str] = None


class TokenResponse(BaseModel):
    id: str
    project_id: str
    provider: str
    status: str
    expires_at: Optional[str] = None
    metadata: dict = {}
    provider_user_id: Optional[str] = None
    provider_account_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Routes

@router.get("/list", response_model=List[ConnectionResponse])
async def list_connections(
    project_id: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """List the project's provider connections, newest first."""
    project = get_owned_project_or_raise(db_session, project_id, ctx)
    connections = list_project_connections(db_session, project.id)

    logger.info(
        "Listed connections",
        extra={"project_id": project.id, "count": len(connections)},
    )
    return connections


@router.post("/woocommerce", response_model=TokenResponse)
async def connect_woocommerce(
    body: WooCommerceCredentialsRequest,
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """
    Store WooCommerce REST API keys for a project.

    With ``verify`` set, the keys are checked against the store first.
    """
    if not (body.store_url and body.consumer_key and body.consumer_secret and body.project_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="store_url, consumer_key, consumer_secret and project_id are required",
        )

    project = get_owned_project_or_raise(db_session, body.project_id, ctx)
    ensure_user_exists(db_session, ctx)

    try:
        token = await save_woocommerce_credentials(
            db_session,
            project_id=project.id,
            user_id=ctx.user_id,
            store_url=body.store_url,
            consumer_key=body.consumer_key,
            consumer_secret=body.consumer_secret,
            verify=body.verify,
        )
    except ProviderConnectionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return TokenResponse(**token.to_public_dict())


@tokens_router.get("", response_model=List[TokenResponse])
async def list_tokens(
    project_id: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """List the project's stored tokens with credential fields removed."""
    project = get_owned_project_or_raise(db_session, project_id, ctx)
    tokens = ExternalTokensRepository(db_session, project.id).list_tokens()
    return [TokenResponse(**token.to_public_dict()) for token in tokens]
