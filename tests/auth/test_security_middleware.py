"""Tests for AuthMiddleware - session validation and acting-user context."""

from datetime import timedelta
from unittest.mock import Mock
from uuid import UUID

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from auth.security_middleware import AuthMiddleware
from auth.session import SessionManager
from auth.types import Session
from auth.exceptions import SessionExpiredError
from utils.timezone import now_utc
from utils.user_context import peek_acting_user_id

USER_A = UUID("00000000-0000-0000-0000-00000000000a")
USER_B = UUID("00000000-0000-0000-0000-00000000000b")


def _session(token: str, user_id: UUID) -> Session:
    now = now_utc()
    return Session(
        token=token,
        user_id=user_id,
        username="alice",
        created_at=now,
        expires_at=now + timedelta(hours=1),
        last_activity_at=now,
    )


@pytest.fixture
def mock_session_manager():
    return Mock(spec=SessionManager)


@pytest.fixture
def app_with_middleware(mock_session_manager):
    """FastAPI app with auth middleware."""
    app = FastAPI()

    app.add_middleware(
        AuthMiddleware,
        session_manager=mock_session_manager,
    )

    @app.get("/admin/users")
    async def protected_route(request: Request):
        return {"user_id": str(request.state.user_id)}

    @app.get("/user/acting")
    def acting_route():
        return {"acting": str(peek_acting_user_id())}

    @app.post("/auth/signin")
    async def public_signin():
        return {"public": True}

    @app.get("/auth/direct-login")
    async def public_direct_login():
        return {"public": True}

    @app.post("/auth/token-signin")
    async def public_token_signin():
        return {"public": True}

    @app.get("/auth/me")
    async def me(request: Request):
        return {"user_id": str(request.state.user_id)}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/auth/direct-login-extra")
    async def lookalike():
        return {"public": False}

    return app


@pytest.fixture
def client(app_with_middleware):
    return TestClient(app_with_middleware)


class TestPublicPaths:
    """Login endpoints are how a browser without a session gets one."""

    def test_signin_no_cookie_succeeds(self, client):
        response = client.post("/auth/signin")

        assert response.status_code == 200

    def test_direct_login_with_query_params(self, client):
        response = client.get("/auth/direct-login?token=tlt_abc")

        assert response.status_code == 200
        assert response.json()["public"] is True

    def test_token_signin_no_cookie_succeeds(self, client):
        assert client.post("/auth/token-signin").status_code == 200

    def test_health_no_cookie_succeeds(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_public_path_ignores_invalid_cookie(self, client, mock_session_manager):
        mock_session_manager.validate_session.side_effect = SessionExpiredError("expired")

        response = client.get("/health", cookies={"session_token": "invalid-token"})

        assert response.status_code == 200

    def test_prefix_lookalike_is_protected(self, client):
        """Only exact paths or sub-paths are public."""
        assert client.get("/auth/direct-login-extra").status_code == 401


class TestProtectedPaths:

    def test_no_cookie_returns_401(self, client):
        response = client.get("/admin/users")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    def test_me_requires_session(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_invalid_session_returns_401(self, client, mock_session_manager):
        mock_session_manager.validate_session.side_effect = SessionExpiredError("expired")

        response = client.get("/admin/users", cookies={"session_token": "invalid-token"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_EXPIRED"

    def test_valid_session_sets_request_state(self, client, mock_session_manager):
        mock_session_manager.validate_session.return_value = _session("valid-token", USER_A)

        response = client.get("/admin/users", cookies={"session_token": "valid-token"})

        assert response.status_code == 200
        assert response.json()["user_id"] == str(USER_A)
        mock_session_manager.validate_session.assert_called_once_with("valid-token")


class TestActingUserContext:

    def test_sync_handler_sees_acting_user(self, client, mock_session_manager):
        mock_session_manager.validate_session.return_value = _session("t", USER_B)

        response = client.get("/user/acting", cookies={"session_token": "t"})

        assert response.json()["acting"] == str(USER_B)

    def test_context_cleared_after_request(self, client, mock_session_manager):
        mock_session_manager.validate_session.return_value = _session("t", USER_A)

        client.get("/admin/users", cookies={"session_token": "t"})

        assert peek_acting_user_id() is None

    def test_different_users_get_correct_context(self, client, mock_session_manager):
        mock_session_manager.validate_session.return_value = _session("token-a", USER_A)
        response_a = client.get("/admin/users", cookies={"session_token": "token-a"})

        mock_session_manager.validate_session.return_value = _session("token-b", USER_B)
        response_b = client.get("/admin/users", cookies={"session_token": "token-b"})

        assert response_a.json()["user_id"] == str(USER_A)
        assert response_b.json()["user_id"] == str(USER_B)
