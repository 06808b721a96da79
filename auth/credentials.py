"""
auth/credentials.py -- Username/password verification (constant-time) [C1].

Enumeration hardening:
  - Unknown username, DELETED account, and wrong password all raise the same
    UnauthorizedError("Invalid credentials").
  - bcrypt always runs, against DUMMY_HASH when there is no usable record, so
    response time does not reveal whether a username exists.

Only after the password matches -- identity is confirmed -- do the messages
become specific ("Account is not active", "Email not verified").
"""

from __future__ import annotations

from auth.interfaces import UserRepository
from auth.models import User, UserStatus
from auth.passwords import DUMMY_HASH, verify_password
from core.errors import UnauthorizedError

INVALID_CREDENTIALS = "Invalid credentials"


class CredentialVerifier:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def verify(self, username: str, password: str) -> User:
        """Return the full user record or raise UnauthorizedError. No side effects."""
        user = self._users.find_by_username_for_auth(username)
        if user is None or user.status == UserStatus.DELETED:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            verify_password(password, DUMMY_HASH)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if user.status != UserStatus.ACTIVE:
            raise UnauthorizedError("Account is not active")

        if user.email_verified_at is None:
            raise UnauthorizedError("Email not verified")

        return user
