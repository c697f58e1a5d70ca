"""
Health check route (no authentication).
"""

import os

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Liveness check with the configuration state of the backing services."""
    airbyte_configured = bool(os.getenv("AIRBYTE_CLIENT_ID") and os.getenv("AIRBYTE_CLIENT_SECRET"))
    return {
        "status": "ok",
        "database_configured": bool(os.getenv("DATABASE_URL")),
        "airbyte_mode": "live" if airbyte_configured else "mock",
    }
