"""
Business logic services.
"""

from src.services.oauth_service import OAuthService
from src.services.project_data_service import ProjectDataService
from src.services.sync_orchestrator import ProjectSyncOrchestrator

__all__ = ["OAuthService", "ProjectDataService", "ProjectSyncOrchestrator"]
