"""
Tests for session token verification and the session middleware.
"""

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jwt.exceptions import InvalidTokenError

from src.platform.session_context import (
    SessionContext,
    SessionContextMiddleware,
    decode_session_token,
    get_session_context,
)


@pytest.fixture
def whoami_client():
    """Minimal app exposing the resolved session user."""
    app = FastAPI()
    app.middleware("http")(SessionContextMiddleware())

    @app.get("/whoami")
    async def whoami(ctx: SessionContext = Depends(get_session_context)):
        return {"user_id": ctx.user_id, "email": ctx.email}

    return TestClient(app)


class TestDecodeSessionToken:

    def test_valid_token(self, make_session_token):
        ctx = decode_session_token(make_session_token("user-1", email="ana@example.com"))

        assert ctx.user_id == "user-1"
        assert ctx.email == "ana@example.com"
        assert ctx.claims["aud"] == "authenticated"

    def test_expired_token(self, make_session_token):
        with pytest.raises(InvalidTokenError):
            decode_session_token(make_session_token("user-1", expires_in=-60))

    def test_wrong_audience(self, make_session_token):
        with pytest.raises(InvalidTokenError):
            decode_session_token(make_session_token("user-1", aud="anon"))

    def test_missing_secret(self, make_session_token, monkeypatch):
        token = make_session_token("user-1")
        monkeypatch.delenv("AUTH_JWT_SECRET")

        with pytest.raises(ValueError):
            decode_session_token(token)

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValueError):
            SessionContext(user_id="")


class TestSessionMiddleware:

    def test_bearer_header(self, whoami_client, make_session_token):
        token = make_session_token("user-1", email="ana@example.com")

        response = whoami_client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"user_id": "user-1", "email": "ana@example.com"}

    def test_session_cookie(self, whoami_client, make_session_token):
        token = make_session_token("user-2")

        response = whoami_client.get("/whoami", headers={"Cookie": f"sb-access-token={token}"})

        assert response.status_code == 200
        assert response.json()["user_id"] == "user-2"

    def test_anonymous_request(self, whoami_client):
        response = whoami_client.get("/whoami")
        assert response.status_code == 401

    @pytest.mark.security
    def test_forged_token(self, whoami_client):
        import jwt

        forged = jwt.encode({"sub": "user-1", "aud": "authenticated", "exp": 9999999999}, "wrong", algorithm="HS256")

        response = whoami_client.get("/whoami", headers={"Authorization": f"Bearer {forged}"})

        assert response.status_code == 401
