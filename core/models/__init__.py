"""Core domain models."""

from core.models.user import (
    BatchAction,
    BatchResult,
    BatchUserRequest,
    ExpiryUpdate,
    LoginLinkRequest,
    Pagination,
    RoleUpdate,
    StatusUpdate,
    UserCreate,
    UserPage,
    UserProfile,
    UserSearch,
    UserSummary,
)

__all__ = [
    # Administration requests
    "UserCreate", "RoleUpdate", "StatusUpdate", "ExpiryUpdate", "LoginLinkRequest", "UserSearch",
    # Batch
    "BatchAction", "BatchUserRequest", "BatchResult",
    # Views
    "UserSummary", "UserPage", "Pagination", "UserProfile",
]
