"""
Application factory.

Wires the infrastructure clients into the auth and admin services and mounts
their routers:

    /auth/*   sign-in and the passwordless login flows (public)
    /admin/*  user administration (role-gated)
    /user/*   the signed-in user's own account
    /health   liveness of Postgres and Valkey
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.admin import create_admin_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.users import create_user_router
from auth.access_tokens import AccessTokenStore
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.credentials import CredentialVerifier
from auth.database import AuthDatabase
from auth.guards import PermissionGuard
from auth.login import LoginOrchestrator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from auth.user_status import UserStatusEngine
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from core.audit import AuditLogger
from core.services.batch_service import BatchUserAdministrator
from core.services.user_service import UserService

logger = logging.getLogger(__name__)


def create_app(
    postgres: PostgresClient,
    valkey: ValkeyClient,
    config: AuthConfig | None = None,
) -> FastAPI:
    """Build the FastAPI app around already-constructed clients."""
    config = config or AuthConfig()

    auth_db = AuthDatabase(postgres)
    security_logger = SecurityLogger(postgres)
    status_engine = UserStatusEngine(auth_db, security_logger=security_logger, config=config)
    session_manager = SessionManager(valkey, config)
    token_store = AccessTokenStore(auth_db, status_engine, config, security_logger)

    auth_service = AuthService(
        config=config,
        auth_db=auth_db,
        verifier=CredentialVerifier(auth_db, config),
        status_engine=status_engine,
        session_manager=session_manager,
        rate_limiter=RateLimiter(valkey, config),
        security_logger=security_logger,
    )
    orchestrator = LoginOrchestrator(auth_db, token_store, status_engine, config, security_logger)

    user_service = UserService(auth_db, AuditLogger(postgres), session_manager=session_manager)
    batch_admin = BatchUserAdministrator(user_service)
    guard = PermissionGuard(auth_db)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("mailadmin API starting")
        yield
        valkey.close()
        postgres.close()
        logger.info("mailadmin API stopped")

    app = FastAPI(title="mailadmin", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service, orchestrator), prefix="/auth")
    app.include_router(
        create_admin_router(guard, user_service, batch_admin, token_store, config),
        prefix="/admin",
    )
    app.include_router(create_user_router(guard, user_service, status_engine), prefix="/user")

    @app.get("/health")
    def health():
        """Reports whether each backing store answers."""
        checks = {}
        try:
            postgres.execute_scalar("SELECT 1")
            checks["database"] = "healthy"
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            checks["database"] = "unhealthy"
        try:
            checks["valkey"] = "healthy" if valkey.ping() else "unhealthy"
        except Exception as e:
            logger.warning(f"Valkey health check failed: {e}")
            checks["valkey"] = "unhealthy"

        healthy = all(value == "healthy" for value in checks.values())
        return {"status": "healthy" if healthy else "degraded", **checks}

    return app


def create_app_from_vault() -> FastAPI:
    """Production entry point: connection strings and base URL come from Vault."""
    from clients.vault_client import get_app_base_url, get_database_url, get_valkey_url

    config = AuthConfig(app_base_url=get_app_base_url())
    return create_app(
        PostgresClient(get_database_url()),
        ValkeyClient(get_valkey_url()),
        config,
    )


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run("main:create_app_from_vault", factory=True, host="0.0.0.0", port=8000)
