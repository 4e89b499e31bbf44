"""Tests for self-service user routes."""

from datetime import timedelta

from auth.permissions import Role
from auth.types import UserStatus


class TestProfile:
    """Test GET /user/profile endpoint."""

    def test_own_profile(self, login_as, make_user):
        user = make_user(email="alice@example.com", role=Role.KNIGHT)

        response = login_as(user).get("/user/profile")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(user.id)
        assert data["username"] == "alice"
        assert data["role"] == "knight"
        assert "expiresAt" not in data

    def test_deleted_account_404(self, login_as, make_user, auth_db):
        user = make_user()
        user_client = login_as(user)
        auth_db.delete_user(user.id)

        assert user_client.get("/user/profile").status_code == 404

    def test_unauthenticated(self, unauthed_client):
        assert unauthed_client.get("/user/profile").status_code == 401


class TestStatus:
    """Test GET /user/status endpoint."""

    def test_active_never_expires(self, login_as, make_user):
        response = login_as(make_user()).get("/user/status")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"]["isValid"] is True
        assert data["display"]["statusText"] == "Never expires"
        assert data["display"]["statusColor"] == "green"

    def test_expiring_soon(self, login_as, make_user):
        user = make_user(expires_in=timedelta(days=3, hours=1))

        display = login_as(user).get("/user/status").json()["data"]["display"]

        assert display["isExpiringSoon"] is True
        assert display["statusColor"] == "orange"
        assert display["daysRemaining"] == 4

    def test_past_expiry_reported_and_persisted(self, login_as, make_user, auth_db):
        user = make_user(expires_in=timedelta(hours=-1))

        data = login_as(user).get("/user/status").json()["data"]

        assert data["status"]["isValid"] is False
        assert data["status"]["status"] == "expired"
        assert data["display"]["statusText"] == "Expired"
        assert auth_db.get_user_by_id(user.id).status == UserStatus.EXPIRED
