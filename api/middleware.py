"""Request-scoped middleware for API requests."""

import logging
import re
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request with an ID, reusing a well-formed upstream X-Request-ID."""

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("X-Request-ID")
        request_id = incoming if incoming and _SAFE_REQUEST_ID.match(incoming) else str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug("%s %s -> %s [%s]", request.method, request.url.path, response.status_code, request_id)
        return response
