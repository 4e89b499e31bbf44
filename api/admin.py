"""
Admin API - user administration and login link issuance.

Every route checks the caller's role first; nothing is read or written for
a caller without the required permission.

Routes:
    GET    /admin/users                          - paginated user list
    POST   /admin/users                          - create a user
    POST   /admin/users/batch                    - one action over many users
    POST   /admin/users/generate-login-link      - reusable login link
    POST   /admin/users/generate-signin-token    - single-use sign-in token
    PUT    /admin/users/{user_id}/role           - replace role
    PUT    /admin/users/{user_id}/status         - overwrite status
    PUT    /admin/users/{user_id}/expiry         - set expiry (0 = never)
    DELETE /admin/users/{user_id}                - delete user
    POST   /admin/users/find                     - look up by username or email
"""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import ErrorCodes, error_json, success_response
from api.request_info import client_ip, user_agent
from auth.access_tokens import AccessTokenStore, describe_lifetime
from auth.config import AuthConfig
from auth.exceptions import UserStatusError
from auth.guards import PermissionGuard
from auth.permissions import Permission
from auth.types import LoginLinkResponse, TemporaryAccessToken, User
from core.models import (
    BatchUserRequest,
    ExpiryUpdate,
    LoginLinkRequest,
    RoleUpdate,
    StatusUpdate,
    UserCreate,
    UserSearch,
    UserSummary,
)
from core.services.batch_service import BatchUserAdministrator
from core.services.user_service import UserService
from utils.timezone import now_utc


def _link_response(
    config: AuthConfig,
    path: str,
    token: TemporaryAccessToken,
    user: User,
    reusable: bool,
) -> dict:
    return LoginLinkResponse(
        login_url=f"{config.app_base_url}{path}?token={token.token}",
        expires_at=token.expires_at,
        expires_in=describe_lifetime(
            token.expires_at, now_utc(), open_ended=reusable and user.expires_at is None
        ),
        username=user.username,
        is_reusable=reusable,
    ).to_wire()


def create_admin_router(
    guard: PermissionGuard,
    user_service: UserService,
    batch_admin: BatchUserAdministrator,
    token_store: AccessTokenStore,
    config: AuthConfig,
) -> APIRouter:
    """Create admin router with injected services."""
    router = APIRouter(tags=["admin"])

    @router.get("/users")
    def list_users(
        request: Request,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        search: str | None = Query(None),
    ):
        guard.require(request, Permission.PROMOTE_USER)
        result = user_service.list_users(page=page, limit=limit, search=search)
        return success_response(result.to_wire()).model_dump(mode="json")

    @router.post("/users")
    def create_user(request: Request, body: UserCreate):
        operator = guard.require(request, Permission.PROMOTE_USER)
        user = user_service.create_user(body, created_by=operator)
        return success_response({"user": user.to_wire()}).model_dump(mode="json")

    @router.post("/users/batch")
    def batch_update(request: Request, body: BatchUserRequest):
        guard.require(request, Permission.MANAGE_USERS)
        result = batch_admin.apply_to_many(
            body.user_ids,
            body.action,
            expiry_time_ms=body.expiry_time,
            reason=body.reason,
        )
        if not result.success:
            return error_json(500, ErrorCodes.BATCH_FAILED, result.error or result.message)
        return success_response(result.to_wire()).model_dump(mode="json")

    @router.post("/users/generate-login-link")
    def generate_login_link(request: Request, body: LoginLinkRequest):
        operator = guard.require(request, Permission.PROMOTE_USER)
        try:
            token, user = token_store.issue_reusable(
                body.user_id,
                issued_by=operator,
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            )
        except UserStatusError as e:
            return error_json(400, ErrorCodes.USER_STATUS_INVALID, e.reason)

        return success_response(
            _link_response(config, "/auth/direct-login", token, user, reusable=True)
        ).model_dump(mode="json")

    @router.post("/users/generate-signin-token")
    def generate_signin_token(request: Request, body: LoginLinkRequest):
        operator = guard.require(request, Permission.PROMOTE_USER)
        try:
            token, user = token_store.issue_single_use(
                body.user_id,
                issued_by=operator,
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            )
        except UserStatusError as e:
            return error_json(400, ErrorCodes.USER_STATUS_INVALID, e.reason)

        return success_response(
            _link_response(config, "/auth/token-signin", token, user, reusable=False)
        ).model_dump(mode="json")

    @router.put("/users/{user_id}/role")
    def assign_role(request: Request, user_id: UUID, body: RoleUpdate):
        operator = guard.require(request, Permission.PROMOTE_USER)
        role = user_service.assign_role(user_id, body.role, operator=operator)
        return success_response({"userId": str(user_id), "role": role.value}).model_dump(mode="json")

    @router.put("/users/{user_id}/status")
    def set_status(request: Request, user_id: UUID, body: StatusUpdate):
        operator = guard.require(request, Permission.PROMOTE_USER)
        user = user_service.set_status(user_id, body.status, reason=body.reason, operator=operator)
        return success_response(
            {"userId": str(user.id), "status": user.status.value}
        ).model_dump(mode="json")

    @router.put("/users/{user_id}/expiry")
    def set_expiry(request: Request, user_id: UUID, body: ExpiryUpdate):
        operator = guard.require(request, Permission.PROMOTE_USER)
        user = user_service.set_expiry(user_id, body.expiry_time, reason=body.reason, operator=operator)
        return success_response({
            "userId": str(user.id),
            "status": user.status.value,
            "expiresAt": user.expires_at.isoformat() if user.expires_at else None,
        }).model_dump(mode="json")

    @router.delete("/users/{user_id}")
    def delete_user(request: Request, user_id: UUID):
        operator = guard.require(request, Permission.PROMOTE_USER)
        user_service.delete_user(user_id, operator=operator)
        return success_response({"deleted": True, "userId": str(user_id)}).model_dump(mode="json")

    @router.post("/users/find")
    def find_user(request: Request, body: UserSearch):
        guard.require(request, Permission.PROMOTE_USER)
        user, role = user_service.find_user(body.search_text)
        return success_response(
            {"user": UserSummary.from_user(user, role).to_wire()}
        ).model_dump(mode="json")

    return router
