"""HTTP routes for sign-in and the passwordless login flows."""

from urllib.parse import quote, urlencode

from fastapi import APIRouter, Request, Response, Query
from fastapi.responses import RedirectResponse

from api.base import success_response
from api.request_info import client_ip, user_agent
from auth.exceptions import InvalidTokenError, UserStatusError
from auth.login import LoginOrchestrator
from auth.security_middleware import SESSION_COOKIE
from auth.service import AuthService
from auth.types import AutoSigninRequest, LoginGrant, SigninRequest, TokenRequest
from auth.guards import current_user_id

import logging

logger = logging.getLogger(__name__)


def _grant_payload(grant: LoginGrant, credential_field: str) -> dict:
    return {
        "success": True,
        "username": grant.username,
        "userId": str(grant.user_id),
        credential_field: grant.credential,
    }


def _error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(f"/auth/error?error={quote(error)}", status_code=302)


def create_auth_router(auth_service: AuthService, orchestrator: LoginOrchestrator) -> APIRouter:
    """Create auth router with injected services."""
    router = APIRouter(tags=["auth"])

    @router.post("/signin")
    async def signin(request: Request, response: Response, body: SigninRequest):
        """Credentials sign-in; the password may be a DIRECT_LOGIN_/TEMP_LOGIN_TOKEN_ artifact.

        Sets the session_token cookie on success.
        """
        result = auth_service.signin(
            username=body.username,
            credential=body.password,
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )

        response.set_cookie(
            key=SESSION_COOKIE,
            value=result.session.token,
            httponly=True,
            secure=True,
            samesite="lax",
            max_age=int((result.session.expires_at - result.session.created_at).total_seconds()),
        )

        return success_response({
            "user": {
                "id": str(result.user.id),
                "username": result.user.username,
            }
        })

    @router.post("/logout")
    async def logout(request: Request, response: Response):
        """Revoke session and clear cookie."""
        session_token = request.cookies.get(SESSION_COOKIE)
        if session_token:
            auth_service.logout(session_token=session_token, ip_address=client_ip(request))

        response.delete_cookie(key=SESSION_COOKIE)
        return success_response({"message": "Logged out successfully"})

    @router.get("/me")
    async def get_current_user(request: Request):
        """Current session's user. Requires authentication."""
        user_id = current_user_id(request)
        return success_response({
            "user_id": str(user_id),
            "username": request.state.session.username,
        })

    @router.post("/direct-login")
    async def direct_login(request: Request, body: TokenRequest):
        """Redeem a reusable login link; returns the artifact for /auth/signin."""
        grant = orchestrator.direct_login(
            body.token,
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )
        return success_response(_grant_payload(grant, "tempToken"))

    @router.get("/direct-login")
    async def direct_login_redirect(request: Request, token: str | None = Query(None)):
        """Browser entry point of a login link: redirect to auto-signin or the error page."""
        if not token:
            return _error_redirect("InvalidToken")

        try:
            claim = orchestrator.direct_login_claim(
                token,
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            )
        except InvalidTokenError:
            return _error_redirect("TokenExpiredOrInvalid")
        except UserStatusError as e:
            return _error_redirect(e.reason)
        except Exception:
            logger.exception("Direct login redirect failed")
            return _error_redirect("SystemError")

        query = urlencode({
            "userId": str(claim.user_id),
            "username": claim.username,
            "timestamp": claim.timestamp,
        })
        return RedirectResponse(f"/auth/auto-signin?{query}", status_code=302)

    @router.post("/auto-signin")
    async def auto_signin(request: Request, body: AutoSigninRequest):
        """Redeem the redirect claim from GET /auth/direct-login."""
        grant = orchestrator.auto_signin(
            body.user_id,
            body.username,
            timestamp=body.timestamp,
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )
        return success_response(_grant_payload(grant, "tempToken"))

    @router.post("/token-signin")
    async def token_signin(request: Request, body: TokenRequest):
        """Redeem a single-use token; the token is spent afterwards."""
        grant = orchestrator.token_signin(
            body.token,
            ip_address=client_ip(request),
            user_agent=user_agent(request),
        )
        return success_response(_grant_payload(grant, "tempPassword"))

    return router
