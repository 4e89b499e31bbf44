"""Tests for credential artifacts and password verification."""

from uuid import uuid4

import pytest

from auth.credentials import (
    DIRECT_LOGIN_PREFIX,
    MAX_CLOCK_SKEW_MS,
    TEMP_LOGIN_PREFIX,
    CredentialVerifier,
    artifact_is_fresh,
    build_artifact,
    hash_password,
    parse_artifact,
    verify_password,
)
from auth.exceptions import InvalidCredentialsError
from utils.timezone import now_millis

TEST_PASSWORD = "correct-horse"
TEN_MINUTES_MS = 600_000


@pytest.fixture
def verifier(auth_db, config):
    return CredentialVerifier(auth_db, config)


class TestArtifactFormat:

    def test_build_uses_wire_format(self):
        user_id = uuid4()

        artifact = build_artifact(DIRECT_LOGIN_PREFIX, user_id, issued_at_ms=1700000000000)

        assert artifact == f"DIRECT_LOGIN_{user_id}_1700000000000"

    def test_build_rejects_unknown_prefix(self):
        with pytest.raises(ValueError):
            build_artifact("MAGIC_", uuid4())

    def test_parse_roundtrip(self):
        user_id = uuid4()
        parsed = parse_artifact(build_artifact(TEMP_LOGIN_PREFIX, user_id, issued_at_ms=42))

        assert parsed.prefix == TEMP_LOGIN_PREFIX
        assert parsed.user_id == str(user_id)
        assert parsed.issued_at_ms == 42

    def test_plain_password_is_not_an_artifact(self):
        assert parse_artifact("hunter22") is None

    def test_non_numeric_timestamp_parses_without_time(self):
        parsed = parse_artifact(f"DIRECT_LOGIN_{uuid4()}_soon")

        assert parsed is not None
        assert parsed.issued_at_ms is None

    @pytest.mark.parametrize("timestamp", ["\u00b2", "\u0661\u0662\u0663", "1700000000000\u00b9"])
    def test_non_ascii_digits_parse_without_time(self, timestamp):
        """Only ASCII digits count as a timestamp."""
        parsed = parse_artifact(f"DIRECT_LOGIN_{uuid4()}_{timestamp}")

        assert parsed is not None
        assert parsed.issued_at_ms is None


class TestArtifactFreshness:

    def test_fresh(self):
        user_id = uuid4()
        now = now_millis()
        artifact = parse_artifact(build_artifact(DIRECT_LOGIN_PREFIX, user_id, now - 1000))

        assert artifact_is_fresh(artifact, user_id, now, TEN_MINUTES_MS) is True

    def test_just_over_ten_minutes_is_stale(self):
        user_id = uuid4()
        now = now_millis()
        artifact = parse_artifact(build_artifact(DIRECT_LOGIN_PREFIX, user_id, now - 600_001))

        assert artifact_is_fresh(artifact, user_id, now, TEN_MINUTES_MS) is False

    def test_exactly_ten_minutes_is_stale(self):
        user_id = uuid4()
        now = now_millis()
        artifact = parse_artifact(build_artifact(DIRECT_LOGIN_PREFIX, user_id, now - TEN_MINUTES_MS))

        assert artifact_is_fresh(artifact, user_id, now, TEN_MINUTES_MS) is False

    def test_other_users_artifact(self):
        now = now_millis()
        artifact = parse_artifact(build_artifact(DIRECT_LOGIN_PREFIX, uuid4(), now))

        assert artifact_is_fresh(artifact, uuid4(), now, TEN_MINUTES_MS) is False

    def test_far_future_timestamp(self):
        user_id = uuid4()
        now = now_millis()
        artifact = parse_artifact(build_artifact(DIRECT_LOGIN_PREFIX, user_id, now + MAX_CLOCK_SKEW_MS + 1))

        assert artifact_is_fresh(artifact, user_id, now, TEN_MINUTES_MS) is False


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret!")

        assert verify_password("s3cret!", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_oversize_password_rejected(self):
        with pytest.raises(ValueError):
            hash_password("x" * 73)

    def test_malformed_hash_never_matches(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestCredentialVerifier:

    def test_password_signin(self, verifier, make_user):
        user = make_user(password=TEST_PASSWORD)

        assert verifier.authorize("alice", TEST_PASSWORD).id == user.id

    def test_wrong_password(self, verifier, make_user):
        make_user(password=TEST_PASSWORD)

        with pytest.raises(InvalidCredentialsError, match="Invalid username or password"):
            verifier.authorize("alice", "nope")

    def test_unknown_username(self, verifier):
        with pytest.raises(InvalidCredentialsError):
            verifier.authorize("ghost", "whatever")

    def test_user_without_password(self, verifier, make_user):
        make_user(password=None)

        with pytest.raises(InvalidCredentialsError):
            verifier.authorize("alice", "anything")

    @pytest.mark.parametrize("prefix", [DIRECT_LOGIN_PREFIX, TEMP_LOGIN_PREFIX])
    def test_fresh_artifact(self, verifier, make_user, prefix):
        user = make_user()
        now = now_millis()

        assert verifier.authorize("alice", build_artifact(prefix, user.id, now - 1000), now_ms=now).id == user.id

    def test_stale_artifact(self, verifier, make_user):
        user = make_user()
        now = now_millis()

        with pytest.raises(InvalidCredentialsError, match="Login token is invalid or expired"):
            verifier.authorize("alice", build_artifact(DIRECT_LOGIN_PREFIX, user.id, now - 600_001), now_ms=now)

    def test_artifact_for_other_user(self, verifier, make_user):
        make_user(username="alice")
        bob = make_user(username="bob")

        with pytest.raises(InvalidCredentialsError):
            verifier.authorize("alice", build_artifact(DIRECT_LOGIN_PREFIX, bob.id))

    def test_artifact_does_not_fall_back_to_password(self, verifier, make_user):
        """A prefixed string is judged as an artifact, even if it equals the password."""
        password = f"DIRECT_LOGIN_x_{now_millis()}"
        make_user(password=password)

        with pytest.raises(InvalidCredentialsError):
            verifier.authorize("alice", password)

    def test_artifact_with_unicode_digit_timestamp(self, verifier, make_user):
        user = make_user()

        with pytest.raises(InvalidCredentialsError):
            verifier.authorize("alice", f"DIRECT_LOGIN_{user.id}_²")
