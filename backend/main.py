"""
FastAPI application entry point for Syncboard.

Users create projects, connect Google Ads, Meta Ads and WooCommerce, and
sync provider data into one database schema per project through Airbyte.
Project ownership is enforced on every project-scoped route.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from src.platform.session_context import SessionContextMiddleware
from src.platform.secrets import SecretRedactingFilter, validate_encryption_configured
from src.api.routes import health
from src.api.routes import projects
from src.api.routes import connections
from src.api.routes import oauth
from src.api.routes import sync
from src.api.routes import project_data

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
for handler in logging.getLogger().handlers:
    handler.addFilter(SecretRedactingFilter())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Syncboard API")

    app.state.auth_configured = bool(os.getenv("AUTH_JWT_SECRET"))
    if not app.state.auth_configured:
        logger.warning(
            "AUTH_JWT_SECRET is not set. Every session will be treated as anonymous "
            "and protected endpoints will return 401."
        )

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL is not set. Endpoints that touch the database will return 503.")
        app.state.database_configured = False
    else:
        # Mask credentials for safe logging
        masked = database_url.split("@")[-1] if "@" in database_url else "(no @ found, URL may be malformed)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})
        app.state.database_configured = True

    app.state.airbyte_configured = bool(
        os.getenv("AIRBYTE_CLIENT_ID") and os.getenv("AIRBYTE_CLIENT_SECRET")
    )
    if app.state.airbyte_configured:
        logger.info("Airbyte credentials configured", extra={"api_url": os.getenv("AIRBYTE_API_URL")})
    else:
        logger.warning("Airbyte credentials not configured, sync calls run in mock mode")

    if not validate_encryption_configured():
        logger.warning("ENCRYPTION_KEY is not set. Provider credentials cannot be stored.")

    yield

    # Shutdown
    logger.info("Shutting down Syncboard API")


# Create FastAPI app
app = FastAPI(
    title="Syncboard API",
    description="Multi-tenant marketing data dashboard with per-project sync pipelines",
    version="1.0.0",
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session context is attached to every request; routes decide whether it is required
session_middleware = SessionContextMiddleware()
app.middleware("http")(session_middleware)


# Include health route (bypasses authentication)
app.include_router(health.router)

# Include project routes (requires authentication)
app.include_router(projects.router)

# Include provider catalog (public)
app.include_router(projects.providers_router)

# Include connection and token routes (requires authentication)
app.include_router(connections.router)
app.include_router(connections.tokens_router)

# Include OAuth redirect routes (callback requires authentication)
app.include_router(oauth.router)

# Include Airbyte sync routes (requires authentication)
app.include_router(sync.router)

# Include table view routes (requires authentication)
app.include_router(project_data.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    user_id = "anonymous"
    ctx = getattr(request.state, "session_context", None)
    if ctx is not None:
        user_id = ctx.user_id

    logger.error(
        "Unhandled exception",
        extra={
            "user_id": user_id,
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
