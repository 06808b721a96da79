"""
auth/service.py -- AuthService: login, refresh, logout, session invalidation,
current-user lookup, registration, and email verification.

Session model (per user, as seen through three columns):

  NoSession      refresh_token_hash is None.
  ActiveSession  refresh_token_hash = digest(R), with user_version and
                 refresh_token_version pinned in the tokens issued at login.

  login                     -> new ActiveSession (overwrites any previous one)
  logout                    -> NoSession (access tokens live until expiry)
  invalidate_all_sessions   -> NoSession + both versions bumped; every token
                               issued so far is permanently dead
  invalidate_access_tokens  -> user_version bumped only; the refresh token
                               keeps working and mints fresh access tokens

Refresh does NOT rotate the refresh token: the same token can be used again
until expiry, logout, a new login, or invalidate_all_sessions. At most one
refresh token is accepted per user at any time.

Messages for credential and token failures are generic on purpose. The
specific reason goes to the log, never to the caller.

Collaborators are injected; AuthService never reads settings or opens a
database. build_auth_service() is the one place that turns Settings into an
AuthService.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.credentials import CredentialVerifier
from auth.interfaces import Mailer, PermissionLookup, UserRepository
from auth.models import (
    AccessClaims,
    LoginResult,
    RefreshResult,
    Registration,
    User,
    UserProfile,
    UserStatus,
)
from auth.passwords import hash_password
from auth.permissions import PermissionResolver
from auth.sessions import SessionStore
from auth.tokens import TokenIssuer, generate_verification_token, token_digest
from core.config import Settings, SigningConfig
from core.errors import NotFoundError, UnauthorizedError, ValidationError
from mail.messages import build_verification_email

logger = logging.getLogger("userhub.auth")

INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_ACCESS_TOKEN = "Invalid access token"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Composes the verifier, issuer, session store, and permission resolver.

    Usage:
        service = AuthService(users=user_store, permissions=rbac_store, mailer=mailer,
                              issuer=TokenIssuer(signing_config), app_url=settings.app_url)
        result = service.login("ada", "correct horse")
    """

    def __init__(
        self,
        *,
        users: UserRepository,
        permissions: PermissionLookup,
        mailer: Mailer,
        issuer: TokenIssuer,
        app_url: str,
        default_role: str = "User",
    ) -> None:
        self._users = users
        self._mailer = mailer
        self._issuer = issuer
        self._app_url = app_url
        self._default_role = default_role
        self._verifier = CredentialVerifier(users)
        self._sessions = SessionStore(users)
        self._permissions = PermissionResolver(permissions)

    @property
    def issuer(self) -> TokenIssuer:
        return self._issuer

    # ------------------------------------------------------------------
    # Login / refresh / logout
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> LoginResult:
        """Verify credentials and start a new session, replacing any existing one."""
        user = self._verifier.verify(username, password)

        access_token = self._issuer.issue_access_token(user)
        refresh_token = self._issuer.issue_refresh_token(user)

        self._sessions.update_session(
            user.id,
            refresh_token_hash=token_digest(refresh_token),
            last_login_at=_now(),
        )

        permissions = self._permissions.get_permissions(user.id)
        logger.info("User logged in (user_id=%s)", user.id)

        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            user=_profile(user, permissions),
        )

    def refresh(self, refresh_token: str) -> RefreshResult:
        """Mint a new access token from the current refresh token.

        The refresh token is not rotated and nothing is written.
        """
        claims = self._issuer.decode_refresh_token(refresh_token)
        if claims is None:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        user = self._users.find_by_id(claims["user_id"])
        if user is None or not user.is_active:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        if claims["refresh_token_version"] != user.refresh_token_version:
            logger.warning(
                "Refresh token version mismatch - possible replay attack (user_id=%s, token_version=%s, current=%s)",
                user.id,
                claims["refresh_token_version"],
                user.refresh_token_version,
            )
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        if user.refresh_token_hash is None or user.refresh_token_hash != token_digest(refresh_token):
            logger.info("Refresh token does not match the active session (user_id=%s)", user.id)
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        return RefreshResult(access_token=self._issuer.issue_access_token(user))

    def logout(self, user_id: str) -> None:
        """End the refresh capability. Live access tokens expire naturally."""
        self._sessions.clear_refresh_hash(user_id)
        logger.info("User logged out (user_id=%s)", user_id)

    # ------------------------------------------------------------------
    # Forced invalidation
    # ------------------------------------------------------------------

    def invalidate_all_sessions(self, user_id: str) -> None:
        """Kill every access and refresh token the user holds."""
        if not self._sessions.invalidate_all(user_id):
            raise NotFoundError("User not found")
        logger.info("All user sessions invalidated (user_id=%s)", user_id)

    def invalidate_access_tokens(self, user_id: str) -> None:
        """Kill outstanding access tokens only; the refresh token still works."""
        if not self._sessions.bump_user_version(user_id):
            raise NotFoundError("User not found")
        logger.info("User access tokens invalidated (user_id=%s)", user_id)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def get_current_user(self, user_id: str) -> UserProfile:
        """Return the user's profile with freshly fetched permissions."""
        user = self._users.find_by_id(user_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")
        permissions = self._permissions.get_permissions(user_id)
        return _profile(user, permissions, detailed=True)

    def authenticate_access_token(self, token: str) -> AccessClaims:
        """Verify an access token against the user's current state.

        Signature and expiry alone are not enough: the user must still be
        ACTIVE and the token's user_version must equal the stored one.
        """
        claims = self._issuer.decode_access_token(token)
        if claims is None:
            raise UnauthorizedError(INVALID_ACCESS_TOKEN)
        user = self._users.find_by_id(claims["user_id"])
        if user is None or not user.is_active:
            raise UnauthorizedError(INVALID_ACCESS_TOKEN)
        if claims["user_version"] != user.user_version:
            logger.info("Stale access token rejected (user_id=%s)", user.id)
            raise UnauthorizedError(INVALID_ACCESS_TOKEN)
        return AccessClaims(
            user_id=user.id,
            username=user.username,
            role=claims.get("role"),
            user_version=user.user_version,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def create_user(self, registration: Registration) -> User:
        """Register a PENDING user and send the verification email.

        Conflicts are reported one at a time, email before username. Does not
        log the user in.
        """
        email_taken = self._users.find_by_email(registration.email)
        username_taken = self._users.find_by_username(registration.username)
        role = self._users.find_role_by_name(self._default_role)

        if email_taken is not None:
            raise ValidationError("Email already exists")
        if username_taken is not None:
            raise ValidationError("Username already exists")
        if role is None:
            raise ValidationError(f"Default role {self._default_role} not found")

        password_hash = hash_password(registration.password)
        verification_token = generate_verification_token()
        try:
            user = self._users.create(
                User(
                    username=registration.username,
                    email=registration.email,
                    name=registration.name,
                    phone_number=registration.phone_number or None,
                    password_hash=password_hash,
                    role=role,
                    status=UserStatus.PENDING,
                    email_verification_hash=token_digest(verification_token),
                )
            )
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email or username.
            if self._users.find_by_email(registration.email) is not None:
                raise ValidationError("Email already exists") from None
            raise ValidationError("Username already exists") from None
        logger.info("User registered (user_id=%s)", user.id)

        message = build_verification_email(
            to=user.email,
            app_url=self._app_url,
            token=verification_token,
            name=user.name,
            username=user.username,
        )
        self._mailer.send_email(message)
        return user

    def verify_email(self, token: str) -> User:
        """Confirm an email address from a verification link.

        PENDING accounts become ACTIVE. SUSPENDED/DELETED accounts get the
        timestamp but keep their status.
        """
        user = self._users.find_by_verification_hash(token_digest(token))
        if user is None:
            raise ValidationError("Invalid verification token")

        fields: dict = {"email_verified_at": _now(), "email_verification_hash": None}
        if user.status == UserStatus.PENDING:
            fields["status"] = UserStatus.ACTIVE
        self._users.update(user.id, **fields)
        logger.info("Email verified (user_id=%s)", user.id)

        return replace(user, **fields)


def _profile(user: User, permissions: list[str], detailed: bool = False) -> UserProfile:
    return UserProfile(
        id=user.id,
        email=user.email,
        username=user.username,
        name=user.name,
        role=user.role.name if user.role else None,
        permissions=permissions,
        status=user.status if detailed else None,
        email_verified_at=user.email_verified_at if detailed else None,
        profile_picture_url=user.profile_picture_url if detailed else None,
    )


def build_auth_service(
    users: UserRepository,
    permissions: PermissionLookup,
    mailer: Mailer,
    settings: Settings,
) -> AuthService:
    """Wire AuthService from its collaborators and the process-wide settings."""
    return AuthService(
        users=users,
        permissions=permissions,
        mailer=mailer,
        issuer=TokenIssuer(SigningConfig.from_settings(settings)),
        app_url=settings.app_url,
        default_role=settings.default_role,
    )
