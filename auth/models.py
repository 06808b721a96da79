"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
service do the work; these only own the domain shape.

Layer rule: no imports from api/, mail/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class UserStatus(str, Enum):
    """Account status. Only ACTIVE may authenticate or hold a session."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"  # registered, email not yet verified
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"  # set externally; the auth core never deletes rows


@dataclass(frozen=True)
class Role:
    id: int
    name: str


@dataclass(frozen=True)
class PermissionRecord:
    """One row returned by the RBAC lookup. Only `code` is consumed."""

    code: str
    description: str | None = None


@dataclass
class User:
    """A user row as read and written by the auth core.

    user_version / refresh_token_version only ever increase. Bumping
    user_version makes every outstanding access token stale; bumping
    refresh_token_version does the same for refresh tokens.

    refresh_token_hash is the SHA-256 hex digest of the single live refresh
    token (one session per user). None means no session.
    """

    username: str
    email: str
    name: str
    password_hash: str
    id: str | None = None
    role: Role | None = None
    status: UserStatus = UserStatus.PENDING
    phone_number: str | None = None
    profile_picture_url: str | None = None
    email_verified_at: datetime | None = None
    email_verification_hash: str | None = None
    user_version: int = 0
    refresh_token_version: int = 0
    refresh_token_hash: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


@dataclass(frozen=True)
class Registration:
    """Input record for AuthService.create_user(). Shape is validated upstream."""

    email: str
    username: str
    name: str
    password: str
    phone_number: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """User data returned to callers -- never carries hashes or versions."""

    id: str
    email: str
    username: str
    name: str
    role: str | None
    permissions: list[str] = field(default_factory=list)
    status: UserStatus | None = None
    email_verified_at: datetime | None = None
    profile_picture_url: str | None = None


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_token: str
    user: UserProfile


@dataclass(frozen=True)
class RefreshResult:
    access_token: str


@dataclass(frozen=True)
class AccessClaims:
    """Verified claims of an access token whose user_version is still current."""

    user_id: str
    username: str
    role: str | None
    user_version: int


@dataclass(frozen=True)
class EmailMessage:
    """An outbound email handed to the Mailer."""

    to: str
    subject: str
    html: str
    text: str
    app_url: str | None = None
