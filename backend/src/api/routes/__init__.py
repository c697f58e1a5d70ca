# API routes
from src.api.routes import health
from src.api.routes import projects
from src.api.routes import connections
from src.api.routes import oauth
from src.api.routes import sync
from src.api.routes import project_data

__all__ = ["health", "projects", "connections", "oauth", "sync", "project_data"]
