"""
API Dependencies module.

Provides shared FastAPI dependencies for route handlers.
"""

from src.api.dependencies.projects import (
    require_project_id,
    get_owned_project_or_raise,
)

__all__ = [
    "require_project_id",
    "get_owned_project_or_raise",
]
