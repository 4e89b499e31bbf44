"""Tests for BatchUserAdministrator."""

import pytest
from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

from auth.types import UserStatus
from core.audit import AuditLogger
from core.models import BatchAction
from utils.user_context import acting_as

DAY_MS = 24 * 60 * 60 * 1000


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def batch_admin(auth_db, audit):
    from core.services.batch_service import BatchUserAdministrator
    from core.services.user_service import UserService

    return BatchUserAdministrator(UserService(auth_db, audit), max_workers=4)


class TestApplyToMany:
    """Tests for BatchUserAdministrator.apply_to_many."""

    def test_disable_all(self, batch_admin, make_user, auth_db, admin_id):
        users = [make_user(username=f"user{i}") for i in range(5)]

        with acting_as(admin_id):
            result = batch_admin.apply_to_many([u.id for u in users], BatchAction.DISABLE)

        assert result.success is True
        assert result.updated_count == 5
        assert result.error is None
        assert result.message == "Successfully disabled 5 users"
        assert all(auth_db.get_user_by_id(u.id).status == UserStatus.DISABLED for u in users)

    def test_set_expiry_zero_clears_expiry(self, batch_admin, make_user, auth_db, admin_id):
        user = make_user(status=UserStatus.EXPIRED, expires_in=timedelta(days=-1))

        with acting_as(admin_id):
            result = batch_admin.apply_to_many([user.id], BatchAction.SET_EXPIRY, expiry_time_ms=0)

        assert result.updated_count == 1
        stored = auth_db.get_user_by_id(user.id)
        assert stored.expires_at is None
        assert stored.status == UserStatus.ACTIVE

    def test_partial_failure_reports_count(self, batch_admin, make_user, admin_id):
        user = make_user()

        with acting_as(admin_id):
            result = batch_admin.apply_to_many([user.id, uuid4()], BatchAction.SUSPEND)

        assert result.success is True
        assert result.updated_count == 1
        assert result.error is not None

    def test_all_failed(self, batch_admin, admin_id):
        with acting_as(admin_id):
            result = batch_admin.apply_to_many([uuid4(), uuid4()], BatchAction.ENABLE)

        assert result.success is False
        assert result.updated_count == 0
        assert result.error == "All user updates failed"

    def test_operator_attributed_across_threads(self, batch_admin, make_user, audit, admin_id):
        """Worker threads audit under the operator captured from the request."""
        users = [make_user(username=f"user{i}") for i in range(3)]

        with acting_as(admin_id):
            batch_admin.apply_to_many([u.id for u in users], BatchAction.EXTEND, expiry_time_ms=DAY_MS)

        assert audit.log_change.call_count == 3
        assert {c.kwargs["user_id"] for c in audit.log_change.call_args_list} == {admin_id}

    def test_unexpected_error_counts_as_failure(self, auth_db, audit, make_user, admin_id):
        from core.services.batch_service import BatchUserAdministrator
        from core.services.user_service import UserService

        user = make_user()
        auth_db.set_status = Mock(side_effect=RuntimeError("connection reset"))
        batch_admin = BatchUserAdministrator(UserService(auth_db, audit))

        with acting_as(admin_id):
            result = batch_admin.apply_to_many([user.id], BatchAction.DISABLE)

        assert result.success is False

    def test_audit_failure_still_counts_update(self, batch_admin, make_user, auth_db, audit, admin_id):
        """A change that reached the store is counted even if its audit row is lost."""
        users = [make_user(username=f"user{i}") for i in range(2)]
        audit.log_change.side_effect = RuntimeError("audit table missing")

        with acting_as(admin_id):
            result = batch_admin.apply_to_many([u.id for u in users], BatchAction.SUSPEND)

        assert result.success is True
        assert result.updated_count == 2
        assert result.error is None
        assert all(auth_db.get_user_by_id(u.id).status == UserStatus.SUSPENDED for u in users)

    def test_expiry_action_requires_time(self, batch_admin, make_user, admin_id):
        user = make_user()

        with acting_as(admin_id), pytest.raises(ValueError):
            batch_admin.apply_to_many([user.id], BatchAction.EXTEND)

    def test_empty_list_rejected(self, batch_admin, admin_id):
        with acting_as(admin_id), pytest.raises(ValueError):
            batch_admin.apply_to_many([], BatchAction.DISABLE)

    def test_requires_operator(self, batch_admin, make_user):
        user = make_user()

        with pytest.raises(RuntimeError):
            batch_admin.apply_to_many([user.id], BatchAction.DISABLE)
