"""
OAuth routes for the ad platforms.

Provides:
- GET /api/auth/google: Start the Google Ads consent flow
- GET /api/auth/google/callback: Store the Google Ads tokens
- GET /api/auth/meta: Start the Meta Ads consent flow
- GET /api/auth/meta/callback: Store the Meta Ads tokens

The project being connected travels in the short-lived httpOnly cookie
``oauth_project_id``; ``oauth_state`` carries the CSRF state checked on
the callback. Every outcome is a redirect back to the app.

SECURITY: the callback requires a valid session that owns the project.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from src.config.oauth import OAUTH_COOKIE_MAX_AGE, get_app_url, is_production
from src.constants.providers import Provider
from src.database.session import get_db_session
from src.platform.session_context import get_optional_session_context
from src.services.oauth_service import (
    OAuthError,
    OAuthService,
    generate_state,
    verify_state,
)
from src.services.project_access import require_owned_project
from src.services.user_service import ensure_user_exists

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["oauth"])

PROJECT_COOKIE = "oauth_project_id"
STATE_COOKIE = "oauth_state"


def _app_redirect(path: str, **params) -> RedirectResponse:
    url = f"{get_app_url()}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=302)


def _set_flow_cookie(response: RedirectResponse, name: str, value: str) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=OAUTH_COOKIE_MAX_AGE,
        httponly=True,
        secure=is_production(),
        samesite="lax",
    )


def _clear_flow_cookies(response: RedirectResponse) -> None:
    response.delete_cookie(PROJECT_COOKIE)
    response.delete_cookie(STATE_COOKIE)


def start_oauth(provider: Provider, project_id: Optional[str]) -> RedirectResponse:
    """Redirect to the provider's consent page, remembering the project."""
    if not project_id:
        return _app_redirect("/dashboard")

    try:
        state = generate_state()
        authorization_url = OAuthService(provider).create_authorization_url(state)
    except OAuthError as e:
        logger.error(
            "OAuth initiation failed",
            extra={"provider": provider.value, "project_id": project_id, "error": str(e)},
        )
        return _app_redirect("/dashboard", error="auth_failed")

    response = RedirectResponse(url=authorization_url, status_code=302)
    _set_flow_cookie(response, PROJECT_COOKIE, project_id)
    _set_flow_cookie(response, STATE_COOKIE, state)

    logger.info(
        "OAuth flow initiated",
        extra={"provider": provider.value, "project_id": project_id},
    )
    return response


async def complete_oauth(
    provider: Provider,
    request: Request,
    db_session: Session,
    code: Optional[str],
    state: Optional[str],
) -> RedirectResponse:
    """
    Exchange the code and store the tokens for the pending project.

    Any failure ends on /connections?error=callback_failed.
    """
    project_id = request.cookies.get(PROJECT_COOKIE)

    try:
        if not code or not project_id:
            raise OAuthError("Authorization code or project not found")
        verify_state(request.cookies.get(STATE_COOKIE), state)

        ctx = get_optional_session_context(request)
        if ctx is None:
            raise OAuthError("Not authenticated")

        require_owned_project(db_session, project_id, ctx.user_id)
        ensure_user_exists(db_session, ctx)

        service = OAuthService(provider)
        tokens = await service.exchange_code(code)
        account = await service.fetch_ad_accounts(tokens.access_token)
        await service.store_tokens(db_session, project_id, ctx.user_id, tokens, account)

    except Exception as e:
        logger.error(
            "OAuth callback failed",
            extra={
                "provider": provider.value,
                "project_id": project_id,
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        response = _app_redirect("/connections", error="callback_failed")
        _clear_flow_cookies(response)
        return response

    logger.info(
        "OAuth connection stored",
        extra={"provider": provider.value, "project_id": project_id},
    )
    response = _app_redirect("/connections", project_id=project_id)
    _clear_flow_cookies(response)
    return response


@router.get("/google")
async def google_auth(project_id: Optional[str] = None):
    return start_oauth(Provider.GOOGLE_ADS, project_id)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db_session: Session = Depends(get_db_session),
):
    return await complete_oauth(Provider.GOOGLE_ADS, request, db_session, code, state)


@router.get("/meta")
async def meta_auth(project_id: Optional[str] = None):
    return start_oauth(Provider.META_ADS, project_id)


@router.get("/meta/callback")
async def meta_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db_session: Session = Depends(get_db_session),
):
    return await complete_oauth(Provider.META_ADS, request, db_session, code, state)
