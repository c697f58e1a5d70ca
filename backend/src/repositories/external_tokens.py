"""
Repository for provider credentials of a project.

Scoped by project_id. Tokens are unique per (project_id, provider);
writes go through upsert_token which updates the existing row in place.
"""

import logging
from datetime import datetime
from typing import Optional, List

from src.repositories.base_repo import BaseRepository
from src.models.external_token import ExternalToken, TokenStatus

logger = logging.getLogger(__name__)


class ExternalTokensRepository(BaseRepository[ExternalToken]):
    """Provider tokens scoped to a project."""

    def _get_model_class(self) -> type[ExternalToken]:
        return ExternalToken

    def _get_scope_column_name(self) -> str:
        return "project_id"

    def get_for_provider(self, provider: str) -> Optional[ExternalToken]:
        return self._query().filter(ExternalToken.provider == provider).first()

    def get_active_for_provider(self, provider: str) -> Optional[ExternalToken]:
        return (
            self._query()
            .filter(ExternalToken.provider == provider)
            .filter(ExternalToken.status == TokenStatus.ACTIVE.value)
            .first()
        )

    def list_tokens(self) -> List[ExternalToken]:
        """List the project's tokens, newest first."""
        return self._query().order_by(ExternalToken.created_at.desc()).all()

    def upsert_token(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        metadata: Optional[dict] = None,
        provider_user_id: Optional[str] = None,
        provider_account_name: Optional[str] = None,
    ) -> ExternalToken:
        """
        Insert or update the token for (project_id, provider).

        Values must already be encrypted by the caller. The token is
        (re)activated on every write. Metadata and account details left as
        None keep the values already stored.
        """
        fields = {
            "user_id": user_id,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": expires_at,
            "status": TokenStatus.ACTIVE.value,
        }
        optional = {
            "extra_metadata": metadata,
            "provider_user_id": provider_user_id,
            "provider_account_name": provider_account_name,
        }
        fields.update({k: v for k, v in optional.items() if v is not None})

        existing = self.get_for_provider(provider)
        if existing:
            token = self.update(existing.id, fields)
        else:
            fields.setdefault("extra_metadata", {})
            token = self.create({"provider": provider, **fields})

        logger.info(
            "Provider token stored",
            extra={
                "project_id": self.scope_id,
                "provider": provider,
                "replaced": existing is not None,
            }
        )
        return token
