"""
Project model - the tenant boundary of Syncboard.

Each project owns its provider tokens, its sync connections and a
dedicated database schema named after the project id.
"""

from sqlalchemy import Column, String, Index

from src.db_base import Base
from src.models.base import TimestampMixin, generate_uuid


def project_schema_name(project_id: str) -> str:
    """Return the per-project schema name: project_<uuid with underscores>."""
    return "project_" + str(project_id).replace("-", "_")


class Project(Base, TimestampMixin):
    """
    A user-owned project.

    Attributes:
        id: Primary key (UUID)
        name: Display name
        user_id: Owning user id
    """

    __tablename__ = "projects"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )
    name = Column(
        String(255),
        nullable=False,
        comment="Project display name"
    )
    user_id = Column(
        String(255),
        nullable=False,
        index=True,
        comment="Owning user id"
    )

    __table_args__ = (
        Index("ix_projects_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name}, user_id={self.user_id})>"

    @property
    def schema_name(self) -> str:
        return project_schema_name(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "user_id": self.user_id,
            "schema_name": self.schema_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
