"""
auth/interfaces.py -- Collaborator contracts consumed by the auth core.

AuthService and its components depend on these Protocols, not on UserStore,
RbacStore, or SmtpMailer directly. Wiring (api/main.py, main.py, tests) picks
the implementation.

Lookup methods return None when nothing matches; they never raise for
absence.
"""

from __future__ import annotations

from typing import Protocol

from auth.models import EmailMessage, PermissionRecord, Role, User


class UserRepository(Protocol):
    def find_by_username_for_auth(self, username: str) -> User | None:
        """Return the user including password_hash, or None."""

    def find_by_id(self, user_id: str) -> User | None: ...

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_username(self, username: str) -> User | None: ...

    def find_by_verification_hash(self, digest: str) -> User | None: ...

    def find_role_by_name(self, name: str) -> Role | None: ...

    def create(self, user: User) -> User:
        """Insert the user and return it with id, role and timestamps filled in."""

    def update(self, user_id: str, **fields) -> bool:
        """Set the given columns on one row. Returns False if no such row."""

    def increment(self, user_id: str, *counters: str, **fields) -> bool:
        """Atomically add 1 to each counter column and set `fields` in one UPDATE."""


class PermissionLookup(Protocol):
    def get_user_permissions(self, user_id: str) -> list[PermissionRecord]: ...


class Mailer(Protocol):
    def send_email(self, message: EmailMessage) -> bool:
        """Deliver one message. Fire-and-forget from the caller's perspective."""
