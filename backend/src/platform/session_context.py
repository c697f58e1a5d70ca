"""
Session context for Syncboard.

Authentication is delegated to the hosted auth backend. The browser holds
its session JWT either in a cookie (AUTH_COOKIE_NAME, default
``sb-access-token``) or sends it as ``Authorization: Bearer <jwt>``.
This module only verifies that token and exposes who the caller is.

SECURITY:
- user_id is ONLY taken from the verified JWT ``sub`` claim
- Project ownership is checked per request against projects.user_id
- Routes that need a user depend on get_session_context (401 otherwise)
"""

import os
import logging
from typing import Optional

import jwt
from jwt.exceptions import InvalidTokenError
from fastapi import Request, HTTPException, status

logger = logging.getLogger(__name__)

DEFAULT_AUTH_COOKIE_NAME = "sb-access-token"
DEFAULT_AUTH_AUDIENCE = "authenticated"


class SessionContext:
    """
    Identity of the caller, extracted from a verified session JWT.

    Attributes:
        user_id: Auth backend user id (``sub``)
        email: Email claim, if the token carries one
        claims: Full decoded payload
    """

    def __init__(self, user_id: str, email: Optional[str] = None, claims: Optional[dict] = None):
        if not user_id:
            raise ValueError("user_id cannot be empty")
        self.user_id = user_id
        self.email = email
        self.claims = claims or {}

    def __repr__(self) -> str:
        return f"SessionContext(user_id={self.user_id}, email={self.email})"


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    cookie_name = os.getenv("AUTH_COOKIE_NAME", DEFAULT_AUTH_COOKIE_NAME)
    return request.cookies.get(cookie_name) or None


def decode_session_token(token: str) -> SessionContext:
    """
    Verify a session JWT and build the context.

    Raises:
        ValueError: If AUTH_JWT_SECRET is not configured
        jwt.InvalidTokenError: If the token is invalid, expired or has no subject
    """
    secret = os.getenv("AUTH_JWT_SECRET")
    if not secret:
        raise ValueError("AUTH_JWT_SECRET environment variable is required")

    payload = jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        audience=os.getenv("AUTH_JWT_AUDIENCE", DEFAULT_AUTH_AUDIENCE),
        options={"verify_exp": True, "require": ["sub", "exp"]},
    )
    return SessionContext(
        user_id=payload["sub"],
        email=payload.get("email"),
        claims=payload,
    )


class SessionContextMiddleware:
    """
    HTTP middleware that attaches request.state.session_context.

    Anonymous and invalid sessions pass through without a context; the
    routes decide whether a user is required. OAuth redirects and the
    provider catalog work without a session.
    """

    async def __call__(self, request: Request, call_next):
        request.state.session_context = None
        token = _extract_token(request)

        if token:
            try:
                request.state.session_context = decode_session_token(token)
            except InvalidTokenError as e:
                logger.warning(
                    "Invalid session token",
                    extra={"path": request.url.path, "error_type": type(e).__name__}
                )
            except ValueError as e:
                logger.error(
                    "Session verification not configured",
                    extra={"path": request.url.path, "error": str(e)}
                )

        return await call_next(request)


def get_optional_session_context(request: Request) -> Optional[SessionContext]:
    return getattr(request.state, "session_context", None)


def get_session_context(request: Request) -> SessionContext:
    """
    Return the caller's session context.

    Raises 401 when the request carries no valid session.
    """
    ctx = get_optional_session_context(request)
    if ctx is None:
        logger.info("Unauthenticated request", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return ctx
