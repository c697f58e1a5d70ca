"""
User model - mirror of the hosted auth backend's user record.

The auth backend owns identities; this table only keeps what the
orchestration layer needs: the email used to name the user's sync
workspace and the workspace id once one has been provisioned.
"""

from sqlalchemy import Column, String

from src.db_base import Base
from src.models.base import TimestampMixin

DEFAULT_USER_EMAIL = "sem-email@example.com"


class User(Base, TimestampMixin):
    """
    Application user.

    Attributes:
        id: Primary key, the auth backend's user id (JWT ``sub``)
        email: Email address from the session
        workspace_id: Sync platform workspace provisioned for this user
    """

    __tablename__ = "users"

    id = Column(
        String(255),
        primary_key=True,
        comment="Auth backend user id"
    )
    email = Column(
        String(255),
        nullable=False,
        default=DEFAULT_USER_EMAIL,
        comment="User email address"
    )
    workspace_id = Column(
        String(255),
        nullable=True,
        comment="Sync platform workspace id"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"

    @property
    def has_workspace(self) -> bool:
        return bool(self.workspace_id)
