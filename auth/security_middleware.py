"""Security middleware for FastAPI - session validation and acting-user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import SessionExpiredError
from api.base import error_response, ErrorCodes
from utils.user_context import set_acting_user_id, clear_acting_user_id

SESSION_COOKIE = "session_token"


class AuthMiddleware(BaseHTTPMiddleware):
    """Validates the session cookie and records who is acting.

    For protected routes:
    1. Reads the session token from the 'session_token' cookie
    2. Validates it via SessionManager
    3. Sets request.state.user_id / session and the acting-user contextvar
    4. Clears the contextvar after the request completes

    The passwordless login endpoints are public: they are how a browser
    without a session gets one.
    """

    PUBLIC_PATHS = [
        "/auth/signin",
        "/auth/logout",
        "/auth/direct-login",
        "/auth/auto-signin",
        "/auth/token-signin",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        return any(path == public or path.startswith(public + "/") for public in self.PUBLIC_PATHS)

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        session_token = request.cookies.get(SESSION_COOKIE)
        if not session_token:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                ).model_dump(mode="json"),
            )

        try:
            session = self._session_manager.validate_session(session_token)
        except SessionExpiredError:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.SESSION_EXPIRED,
                    "Session has expired",
                ).model_dump(mode="json"),
            )

        set_acting_user_id(session.user_id)
        request.state.user_id = session.user_id
        request.state.session = session

        try:
            return await call_next(request)
        finally:
            clear_acting_user_id()
