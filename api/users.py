"""Self-service routes for the signed-in user."""

from fastapi import APIRouter, Request

from api.base import success_response
from auth.guards import PermissionGuard
from auth.user_status import UserStatusEngine
from core.services.user_service import UserService


def create_user_router(
    guard: PermissionGuard,
    user_service: UserService,
    status_engine: UserStatusEngine,
) -> APIRouter:
    """Create user router with injected services."""
    router = APIRouter(tags=["user"])

    @router.get("/profile")
    def get_profile(request: Request):
        """Own account details."""
        user_id = guard.require_user(request)
        profile = user_service.get_profile(user_id)
        return success_response(profile.to_wire()).model_dump(mode="json")

    @router.get("/status")
    def get_status(request: Request):
        """Current status check plus the display block shown in the account menu."""
        user_id = guard.require_user(request)
        result = status_engine.check_status(user_id)
        display = status_engine.describe(user_id)
        return success_response({
            "status": result.to_wire(),
            "display": display.to_wire() if display else None,
        }).model_dump(mode="json")

    return router
