"""API test fixtures - admin and user routers over the in-memory stores."""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from api.admin import create_admin_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.users import create_user_router
from auth.access_tokens import AccessTokenStore
from auth.guards import PermissionGuard
from auth.permissions import Role
from auth.security_middleware import AuthMiddleware, SESSION_COOKIE
from auth.session import SessionManager
from auth.user_status import UserStatusEngine
from core.audit import AuditLogger
from core.services.batch_service import BatchUserAdministrator
from core.services.user_service import UserService


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def session_manager(valkey, config):
    return SessionManager(valkey, config)


@pytest.fixture
def status_engine(auth_db, security_logger, config):
    return UserStatusEngine(auth_db, security_logger=security_logger, config=config)


@pytest.fixture
def token_store(auth_db, status_engine, config, security_logger):
    return AccessTokenStore(auth_db, status_engine, config, security_logger)


@pytest.fixture
def user_service(auth_db, audit, session_manager):
    return UserService(auth_db, audit, session_manager=session_manager)


@pytest.fixture
def batch_admin(user_service):
    return BatchUserAdministrator(user_service, max_workers=4)


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(auth_db, session_manager, status_engine, token_store, user_service, batch_admin, config):
    """FastAPI app with auth middleware, error handlers, and admin/user routes."""
    guard = PermissionGuard(auth_db)

    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    register_error_handlers(app)

    app.include_router(
        create_admin_router(guard, user_service, batch_admin, token_store, config),
        prefix="/admin",
    )
    app.include_router(create_user_router(guard, user_service, status_engine), prefix="/user")

    return app


@pytest.fixture
def login_as(app, session_manager):
    """Factory returning a client holding a live session for the given user."""

    def _login(user) -> TestClient:
        session = session_manager.create_session(user.id, user.username)
        c = TestClient(app, raise_server_exceptions=False)
        c.cookies.set(SESSION_COOKIE, session.token)
        return c

    return _login


@pytest.fixture
def emperor(make_user):
    return make_user(username="emperor", role=Role.EMPEROR)


@pytest.fixture
def client(login_as, emperor):
    """Client signed in as the emperor."""
    return login_as(emperor)


@pytest.fixture
def civilian_client(login_as, make_user):
    return login_as(make_user(username="pleb", role=Role.CIVILIAN))


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no session cookie)."""
    return TestClient(app, raise_server_exceptions=False)
