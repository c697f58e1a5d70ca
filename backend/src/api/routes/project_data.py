"""
Project data API routes (table views).

Provides:
- POST /api/dados/columns: Column metadata of a project table
- POST /api/dados/load: Rows of one table, or of every known table
- POST /api/dados/setup-test-data: Create sample tables in the project schema

SECURITY: All routes require a valid session and ownership of the project.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.api.dependencies.projects import get_owned_project_or_raise
from src.database.session import get_db_session
from src.platform.session_context import SessionContext, get_session_context
from src.services.project_data_service import ProjectDataError, ProjectDataService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dados", tags=["project-data"])


# Request/Response models

class TableRequest(BaseModel):
    project_id: Optional[str] = None
    table_name: Optional[str] = None


class ColumnsResponse(BaseModel):
    table: str
    schema_name: str
    columns: List[Dict[str, Any]]


class SetupResponse(BaseModel):
    message: str
    schema_name: str
    statements: int
    failed: int


def _data_service(
    body: TableRequest,
    ctx: SessionContext,
    db_session: Session,
) -> ProjectDataService:
    project = get_owned_project_or_raise(db_session, body.project_id, ctx)
    return ProjectDataService(db_session, project)


# Routes

@router.post("/columns", response_model=ColumnsResponse)
async def get_columns(
    body: TableRequest,
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """Describe the columns of a table in the project schema."""
    if not body.table_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="table_name is required",
        )
    service = _data_service(body, ctx, db_session)

    try:
        columns = service.get_columns(body.table_name)
    except ProjectDataError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return ColumnsResponse(table=body.table_name, schema_name=service.schema, columns=columns)


@router.post("/load")
async def load_data(
    body: TableRequest,
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """
    Load one table when table_name is given, otherwise orders, products
    and customers. Tables that are not synced yet come back as demo rows.
    """
    service = _data_service(body, ctx, db_session)

    try:
        if body.table_name:
            return service.load_table(body.table_name)
        return {"tables": service.load_known_tables()}
    except ProjectDataError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/setup-test-data", response_model=SetupResponse)
async def setup_test_data(
    body: TableRequest,
    ctx: SessionContext = Depends(get_session_context),
    db_session: Session = Depends(get_db_session),
):
    """Create the sample orders, products and customers tables."""
    service = _data_service(body, ctx, db_session)

    try:
        result = service.setup_sample_data()
    except ProjectDataError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    logger.info(
        "Sample data requested",
        extra={"project_id": body.project_id, "user_id": ctx.user_id},
    )
    return SetupResponse(
        message=result["message"],
        schema_name=result["schema"],
        statements=result["statements"],
        failed=result["failed"],
    )
