"""
auth/sessions.py -- Session state on the user row.

A user's session is three columns: refresh_token_hash, user_version and
refresh_token_version. Every method here is a single UPDATE on one row, with
counters incremented in SQL (col = col + 1), so two racing bumps can never
collapse into one. There is no compare-and-swap: a login racing an
invalidation is last-write-wins.

Each method returns False when the user id matched no row.
"""

from __future__ import annotations

from auth.interfaces import UserRepository

_UNSET = object()


class SessionStore:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def update_session(self, user_id: str, *, refresh_token_hash=_UNSET, last_login_at=_UNSET) -> bool:
        """Write the new session fingerprint and/or login timestamp."""
        fields: dict = {}
        if refresh_token_hash is not _UNSET:
            fields["refresh_token_hash"] = refresh_token_hash
        if last_login_at is not _UNSET:
            fields["last_login_at"] = last_login_at
        if not fields:
            return False
        return self._users.update(user_id, **fields)

    def clear_refresh_hash(self, user_id: str) -> bool:
        return self._users.update(user_id, refresh_token_hash=None)

    def bump_user_version(self, user_id: str) -> bool:
        """Invalidate every access token issued so far."""
        return self._users.increment(user_id, "user_version")

    def bump_refresh_version(self, user_id: str) -> bool:
        """Invalidate every refresh token issued so far."""
        return self._users.increment(user_id, "refresh_token_version")

    def invalidate_all(self, user_id: str) -> bool:
        """Bump both versions and drop the stored refresh digest in one statement."""
        return self._users.increment(
            user_id,
            "user_version",
            "refresh_token_version",
            refresh_token_hash=None,
        )

