"""
Batch user administration.

Applies one action to many users at once. Items are independent: one failing
user never stops the others, and the result reports how many succeeded.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from uuid import UUID

from auth.exceptions import UserNotFoundError
from auth.types import UserStatus
from core.models import BatchAction, BatchResult
from core.services.user_service import UserService
from utils.user_context import get_acting_user_id

logger = logging.getLogger(__name__)

_ACTION_STATUS = {
    BatchAction.DISABLE: UserStatus.DISABLED,
    BatchAction.ENABLE: UserStatus.ACTIVE,
    BatchAction.SUSPEND: UserStatus.SUSPENDED,
}

_ACTION_VERBS = {
    BatchAction.EXTEND: "extended",
    BatchAction.SET_EXPIRY: "set expiry for",
    BatchAction.DISABLE: "disabled",
    BatchAction.ENABLE: "enabled",
    BatchAction.SUSPEND: "suspended",
}


class BatchUserAdministrator:
    """Fans one admin action out over a list of users."""

    def __init__(self, user_service: UserService, max_workers: int = 8):
        self.user_service = user_service
        self.max_workers = max_workers

    def apply_to_many(
        self,
        user_ids: list[UUID],
        action: BatchAction,
        expiry_time_ms: int | None = None,
        reason: str | None = None,
    ) -> BatchResult:
        """
        Apply action to every user in user_ids.

        extend and setExpiry both set expires_at to now + expiry_time_ms
        (0 clears it) and reactivate the account; the status actions
        overwrite status.

        Returns:
            success=False only when every item failed

        Raises:
            ValueError: expiry action without expiry_time_ms, or empty user_ids
        """
        if not user_ids:
            raise ValueError("At least one user must be selected")
        if action.needs_expiry and expiry_time_ms is None:
            raise ValueError("Extend and setExpiry require an expiry time")

        # Worker threads don't inherit the request's context, so resolve the operator here
        operator = get_acting_user_id()

        updated = 0
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(user_ids))) as executor:
            futures = {
                executor.submit(self._apply_one, user_id, action, expiry_time_ms, reason, operator): user_id
                for user_id in user_ids
            }
            for future in as_completed(futures):
                if future.result():
                    updated += 1

        failed = len(user_ids) - updated
        logger.info(
            f"Batch {action.value} by {operator}: {updated} updated, {failed} failed"
        )

        if updated == 0:
            return BatchResult(
                success=False,
                updated_count=0,
                message=f"Batch {action.value} failed",
                error="All user updates failed",
            )

        return BatchResult(
            success=True,
            updated_count=updated,
            message=f"Successfully {_ACTION_VERBS[action]} {updated} users",
            error=f"Some users failed to update; {updated} updated" if failed else None,
        )

    def _apply_one(
        self,
        user_id: UUID,
        action: BatchAction,
        expiry_time_ms: int | None,
        reason: str | None,
        operator: UUID,
    ) -> bool:
        try:
            if action.needs_expiry:
                self.user_service.set_expiry(user_id, expiry_time_ms, reason=reason, operator=operator)
            else:
                self.user_service.set_status(user_id, _ACTION_STATUS[action], reason=reason, operator=operator)
            return True
        except UserNotFoundError:
            logger.warning(f"Batch {action.value}: user {user_id} not found")
            return False
        except Exception:
            logger.warning(f"Batch {action.value}: failed to update user {user_id}", exc_info=True)
            return False
