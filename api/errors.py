"""Global exception handlers for FastAPI.

Maps the typed domain exceptions onto HTTP status codes:

    400 malformed input      401 no/expired session, bad credentials
    403 permission / status  404 missing user
    409 duplicate user       410 token gone (expired, used, unknown)
    429 rate limited         500 anything unexpected (logged, generic message)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from api.base import error_json, ErrorCodes
from auth.exceptions import (
    ClaimMismatchError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotAuthenticatedError,
    PermissionDeniedError,
    ProtectedUserError,
    RateLimitedError,
    SessionExpiredError,
    UserConflictError,
    UserNotFoundError,
    UserStatusError,
)

logger = logging.getLogger(__name__)

# exception type -> (status, code); message is str(exc)
_STATUS_MAP = {
    InvalidTokenError: (410, ErrorCodes.TOKEN_GONE),
    ClaimMismatchError: (400, ErrorCodes.CLAIM_MISMATCH),
    InvalidCredentialsError: (401, ErrorCodes.INVALID_CREDENTIALS),
    NotAuthenticatedError: (401, ErrorCodes.NOT_AUTHENTICATED),
    SessionExpiredError: (401, ErrorCodes.SESSION_EXPIRED),
    PermissionDeniedError: (403, ErrorCodes.PERMISSION_DENIED),
    ProtectedUserError: (403, ErrorCodes.PROTECTED_USER),
    UserNotFoundError: (404, ErrorCodes.NOT_FOUND),
    UserConflictError: (409, ErrorCodes.ALREADY_EXISTS),
}


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    async def mapped_error_handler(request: Request, exc: Exception):
        status_code, code = _STATUS_MAP[type(exc)]
        return error_json(status_code, code, str(exc))

    for exc_type in _STATUS_MAP:
        app.add_exception_handler(exc_type, mapped_error_handler)

    @app.exception_handler(UserStatusError)
    async def user_status_error_handler(request: Request, exc: UserStatusError):
        return error_json(403, ErrorCodes.USER_STATUS_INVALID, exc.reason)

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return error_json(
            429,
            ErrorCodes.RATE_LIMITED,
            f"Too many attempts. Please wait {exc.retry_after_seconds} seconds.",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return error_json(404, ErrorCodes.NOT_FOUND, message)
        return error_json(400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_json(400, ErrorCodes.VALIDATION_ERROR, _first_validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
