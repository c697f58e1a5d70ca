"""
Keeps the users table in step with the auth backend.

Called before any write that references users.id (project creation,
workspace provisioning) so the row always exists.
"""

import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from src.models.user import User, DEFAULT_USER_EMAIL
from src.platform.session_context import SessionContext

logger = logging.getLogger(__name__)


def ensure_user_exists(db_session: Session, ctx: SessionContext) -> User:
    """
    Insert the session user, or refresh their email if it changed.

    Raises:
        SQLAlchemyError: If the row cannot be written
    """
    email = ctx.email or DEFAULT_USER_EMAIL
    user = db_session.query(User).filter(User.id == ctx.user_id).first()

    if user is not None and user.email == email:
        return user

    if user is None:
        user = User(id=ctx.user_id, email=email)
        db_session.add(user)
    else:
        user.email = email

    try:
        db_session.commit()
        db_session.refresh(user)
    except SQLAlchemyError as e:
        db_session.rollback()
        logger.error(
            "Failed to upsert user",
            extra={"user_id": ctx.user_id, "error": str(e)}
        )
        raise

    logger.info("User record ensured", extra={"user_id": ctx.user_id})
    return user
