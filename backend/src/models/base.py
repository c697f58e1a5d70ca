"""
Base mixins for database models.

Provides common functionality:
- TimestampMixin: created_at, updated_at timestamps
- ProjectScopedMixin: project_id for per-project isolation
- generate_uuid: UUID generation for primary keys
- JSONType: JSONB on PostgreSQL, plain JSON elsewhere (tests)
"""

import uuid

from sqlalchemy import Column, String, DateTime, JSON, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declared_attr

JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )


class ProjectScopedMixin:
    """
    Mixin that adds project_id column for per-project isolation.

    SECURITY: project_id is only trusted after the owning user has been
    checked against the session (see ProjectsRepository.get_owned).
    """

    @declared_attr
    def project_id(cls):
        return Column(
            String(255),
            nullable=False,
            index=True,
            comment="Owning project identifier"
        )
