"""
ExternalToken model - provider credentials attached to a project.

One row per (project_id, provider). OAuth providers store their access and
refresh tokens; WooCommerce stores its consumer key/secret pair as an
encrypted JSON document in access_token.

SECURITY: access_token and refresh_token hold Fernet ciphertext, never
plaintext. Use src.platform.secrets to read or write them.
"""

import enum

from sqlalchemy import Column, String, Text, DateTime, UniqueConstraint

from src.db_base import Base
from src.models.base import TimestampMixin, ProjectScopedMixin, JSONType, generate_uuid


class TokenStatus(str, enum.Enum):
    """Lifecycle of a stored provider credential."""
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class ExternalToken(Base, TimestampMixin, ProjectScopedMixin):
    """
    Provider credential for a project.

    Attributes:
        id: Primary key (UUID)
        user_id: User who connected the provider
        project_id: Owning project
        provider: Provider id (google_ads, meta_ads, woocommerce)
        access_token: Encrypted access token or credential document
        refresh_token: Encrypted refresh token (OAuth providers)
        expires_at: Access token expiry, when the provider reports one
        status: active / revoked / expired
        extra_metadata: Non-sensitive provider details (store_url, account ids)
        provider_user_id: Account id on the provider side
        provider_account_name: Human-readable account name
    """

    __tablename__ = "external_tokens"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )
    user_id = Column(String(255), nullable=False, index=True)
    provider = Column(String(50), nullable=False)
    access_token = Column(Text, nullable=False, comment="Encrypted access token")
    refresh_token = Column(Text, nullable=True, comment="Encrypted refresh token")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        String(50),
        nullable=False,
        default=TokenStatus.ACTIVE.value,
        index=True
    )
    extra_metadata = Column(
        "metadata",
        JSONType,
        nullable=True,
        default=dict,
        comment="Non-sensitive provider metadata"
    )
    provider_user_id = Column(String(255), nullable=True)
    provider_account_name = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("project_id", "provider", name="uq_external_tokens_project_provider"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExternalToken("
            f"id={self.id}, "
            f"project_id={self.project_id}, "
            f"provider={self.provider}, "
            f"status={self.status}"
            f")>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == TokenStatus.ACTIVE.value

    @property
    def metadata_dict(self) -> dict:
        return dict(self.extra_metadata or {})

    def to_public_dict(self) -> dict:
        """Serialize without any credential material."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "provider": self.provider,
            "status": self.status,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "metadata": self.metadata_dict,
            "provider_user_id": self.provider_user_id,
            "provider_account_name": self.provider_account_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
