"""
Audit trail for administrator changes to user accounts.

Every admin mutation of a user is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Operator-attributed (who made the change)
- Detailed (captures old and new values, plus the stated reason)

Sign-in activity does not belong here; that goes to the security event log.
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.user_context import get_acting_user_id
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to a user."""

    CREATE = "create"
    UPDATE_STATUS = "update_status"
    UPDATE_EXPIRY = "update_expiry"
    ASSIGN_ROLE = "assign_role"
    DELETE = "delete"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two states of a user.

    Args:
        old: Previous state
        new: New state
        exclude_fields: Fields to ignore (defaults to {"last_login_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"last_login_at"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in all_keys:
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail for user administration.

    IMPORTANT: Always use model_dump(mode="json") when passing Pydantic models
    so UUIDs and datetimes are serialized to JSON-compatible strings.

    Usage:
        audit = AuditLogger(postgres)

        changes = compute_changes(
            {"status": old.status.value},
            {"status": new.status.value},
        )
        audit.log_change(
            entity_id=user.id,
            action=AuditAction.UPDATE_STATUS,
            changes=changes,
            reason="Left the company",
        )

        history = audit.get_entity_history(user.id)
    """

    ENTITY_TYPE = "user"

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
        user_id: UUID | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Log a change to a user account.

        Args:
            entity_id: ID of the user that was changed
            action: The action performed
            changes: The changes made (format depends on action)
            user_id: Operator who made the change (defaults to the acting user)
            reason: Free-text justification given by the operator

        Changes format by action:
        - CREATE: {"created": {user data}}
        - UPDATE_*/ASSIGN_ROLE: {"field": {"old": old_val, "new": new_val}, ...}
        - DELETE: {"deleted": {user data at deletion}}
        """
        if user_id is None:
            user_id = get_acting_user_id()

        self.postgres.execute(
            """
            INSERT INTO audit_log (id, user_id, entity_type, entity_id, action, changes, reason, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                user_id,
                self.ENTITY_TYPE,
                entity_id,
                action.value,
                Json(changes),
                reason,
                now_utc()
            )
        )

    def get_entity_history(self, entity_id: UUID) -> list[dict[str, Any]]:
        """
        Full audit history for a user, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, user_id, entity_type, entity_id, action, changes, reason, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (self.ENTITY_TYPE, entity_id)
        )

    def get_operator_activity(
        self,
        user_id: UUID | None = None,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """
        Recent changes made by an operator (defaults to the acting user), newest first.
        """
        if user_id is None:
            user_id = get_acting_user_id()

        return self.postgres.execute(
            """
            SELECT id, user_id, entity_type, entity_id, action, changes, reason, created_at
            FROM audit_log
            WHERE user_id = %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, limit)
        )
