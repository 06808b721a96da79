"""
tests/test_registration.py -- AuthService.create_user() and verify_email().

The mailer is the MagicMock from conftest; the verification token is pulled
back out of the rendered email, exactly as a user would click it.

Coverage:
  - PENDING user created with hashed password, default role, digest stored
  - Conflict order: email before username; role missing is reported
  - Case-insensitive uniqueness
  - Verification email content and delivery failure tolerance
  - verify_email: PENDING -> ACTIVE, single use, unknown token rejected
  - Register -> verify -> login end to end
  - Passwords: bcrypt byte limit, surrounding whitespace kept
  - Unique-constraint races surface as ValidationError
"""

from __future__ import annotations

import re
from unittest.mock import MagicMock

import pytest

from auth.models import Registration, UserStatus
from auth.passwords import verify_password
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import token_digest
from conftest import PASSWORD
from core.errors import UnauthorizedError, ValidationError

_TOKEN_RE = re.compile(r"token=([0-9a-f]{64})")


def _registration(**overrides) -> Registration:
    values = {
        "email": "grace@example.test",
        "username": "grace",
        "name": "Grace Hopper",
        "password": PASSWORD,
    }
    values.update(overrides)
    return Registration(**values)


def _sent_token(mailer) -> str:
    message = mailer.send_email.call_args.args[0]
    return _TOKEN_RE.search(message.text).group(1)


class TestCreateUser:
    def test_creates_pending_user(self, service: AuthService, store: UserStore) -> None:
        user = service.create_user(_registration(phone_number="+15555550100"))

        stored = store.find_by_id(user.id)
        assert stored.status == UserStatus.PENDING
        assert stored.email_verified_at is None
        assert stored.role.name == "User"
        assert stored.phone_number == "+15555550100"
        assert stored.password_hash != PASSWORD
        assert verify_password(PASSWORD, stored.password_hash)

    def test_stores_digest_of_mailed_token(self, service: AuthService, store: UserStore, mailer) -> None:
        user = service.create_user(_registration())
        token = _sent_token(mailer)
        assert store.find_by_id(user.id).email_verification_hash == token_digest(token)

    def test_sends_verification_email(self, service: AuthService, mailer) -> None:
        service.create_user(_registration())

        mailer.send_email.assert_called_once()
        message = mailer.send_email.call_args.args[0]
        assert message.to == "grace@example.test"
        assert message.subject == "Verify your UserHub email"
        assert "https://app.example.test/verify-email?token=" in message.text
        assert "Grace Hopper" in message.html

    def test_mail_failure_does_not_fail_registration(self, service: AuthService, store: UserStore, mailer) -> None:
        mailer.send_email.return_value = False
        user = service.create_user(_registration())
        assert store.find_by_id(user.id) is not None

    def test_email_conflict_reported_before_username(
        self, service: AuthService, store: UserStore, make_user, mailer
    ) -> None:
        make_user("ada", email="grace@example.test")
        with pytest.raises(ValidationError, match="Email already exists"):
            service.create_user(_registration())
        assert store.find_by_username("grace") is None
        mailer.send_email.assert_not_called()

    def test_username_conflict(self, service: AuthService, store: UserStore, make_user, mailer) -> None:
        make_user("grace", email="someone-else@example.test")
        with pytest.raises(ValidationError, match="Username already exists"):
            service.create_user(_registration())
        assert store.find_by_email("grace@example.test") is None
        mailer.send_email.assert_not_called()

    def test_conflicts_ignore_case(self, service: AuthService, make_user) -> None:
        make_user("grace", email="grace@example.test")
        with pytest.raises(ValidationError, match="Email already exists"):
            service.create_user(_registration(email="GRACE@example.test", username="other"))
        with pytest.raises(ValidationError, match="Username already exists"):
            service.create_user(_registration(email="new@example.test", username="GRACE"))

    def test_missing_default_role(self, store: UserStore, rbac, mailer, issuer) -> None:
        service = AuthService(
            users=store,
            permissions=rbac,
            mailer=mailer,
            issuer=issuer,
            app_url="https://app.example.test",
            default_role="Member",
        )
        with pytest.raises(ValidationError, match="Default role Member not found"):
            service.create_user(_registration())
        mailer.send_email.assert_not_called()

    def test_multibyte_password_over_bcrypt_limit(self, service: AuthService, store: UserStore, mailer) -> None:
        """40 characters but 80 UTF-8 bytes: rejected as a ValidationError, nothing stored."""
        with pytest.raises(ValidationError, match="at most 72 bytes"):
            service.create_user(_registration(password="\u00e9" * 40))
        assert store.find_by_username("grace") is None
        mailer.send_email.assert_not_called()

    def test_password_whitespace_is_preserved(self, service: AuthService, mailer) -> None:
        padded = "  " + PASSWORD + "  "
        service.create_user(_registration(password=padded))
        service.verify_email(_sent_token(mailer))

        assert service.login("grace", padded).user.username == "grace"
        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            service.login("grace", PASSWORD)

    def test_new_user_cannot_log_in(self, service: AuthService) -> None:
        service.create_user(_registration())
        with pytest.raises(UnauthorizedError, match="Account is not active"):
            service.login("grace", PASSWORD)


class TestVerifyEmail:
    def test_activates_pending_user(self, service: AuthService, store: UserStore, mailer) -> None:
        user = service.create_user(_registration())

        verified = service.verify_email(_sent_token(mailer))

        assert verified.id == user.id
        assert verified.status == UserStatus.ACTIVE
        stored = store.find_by_id(user.id)
        assert stored.status == UserStatus.ACTIVE
        assert stored.email_verified_at is not None
        assert stored.email_verification_hash is None

    def test_token_is_single_use(self, service: AuthService, mailer) -> None:
        service.create_user(_registration())
        token = _sent_token(mailer)
        service.verify_email(token)
        with pytest.raises(ValidationError, match="Invalid verification token"):
            service.verify_email(token)

    def test_unknown_token(self, service: AuthService) -> None:
        with pytest.raises(ValidationError, match="Invalid verification token"):
            service.verify_email("0" * 64)

    def test_suspended_user_keeps_status(self, service: AuthService, store: UserStore, mailer) -> None:
        user = service.create_user(_registration())
        store.update(user.id, status=UserStatus.SUSPENDED)

        service.verify_email(_sent_token(mailer))

        stored = store.find_by_id(user.id)
        assert stored.status == UserStatus.SUSPENDED
        assert stored.email_verified_at is not None

    def test_register_verify_login(self, service: AuthService, mailer) -> None:
        user = service.create_user(_registration())
        service.verify_email(_sent_token(mailer))

        result = service.login("grace", PASSWORD)

        assert result.user.id == user.id
        assert result.user.permissions == ["profile:read", "profile:update"]


class TestRegistrationRace:
    """The unique constraint catches a registration that slipped past the lookups."""

    def test_email_race_reported_as_conflict(
        self, service: AuthService, store: UserStore, make_user, monkeypatch
    ) -> None:
        winner = make_user("ada", email="grace@example.test")
        # First lookup runs before the competing insert, the second after it.
        monkeypatch.setattr(store, "find_by_email", MagicMock(side_effect=[None, winner]))

        with pytest.raises(ValidationError, match="Email already exists"):
            service.create_user(_registration())

    def test_username_race_reported_as_conflict(
        self, service: AuthService, store: UserStore, make_user, mailer, monkeypatch
    ) -> None:
        make_user("grace", email="someone-else@example.test")
        monkeypatch.setattr(store, "find_by_username", MagicMock(return_value=None))

        with pytest.raises(ValidationError, match="Username already exists"):
            service.create_user(_registration())
        mailer.send_email.assert_not_called()
