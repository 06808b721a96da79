"""
auth/tokens.py -- Access/refresh JWT issuance and refresh-token digests.

Security design decisions:
  JWT: python-jose with HS256. Two token types, two keys [K1]:
       access  -- user_id, role, username, user_version; short expiry.
       refresh -- user_id, refresh_token_version; long expiry.
       A leaked access key cannot forge refresh tokens and vice versa. Each
       token also carries its type, so a token of one kind is never accepted
       as the other even under a misconfiguration that reuses a key.

       Every token carries a random jti. Two refresh tokens issued to the same
       user within the same second would otherwise be byte-identical, and a
       second login would not change the stored digest.

       decode_*() return None on any failure -- the service turns that into
       an UnauthorizedError with a generic message.

  Refresh digest: SHA-256 over the exact signed token string, stored as hex.
       The refresh token itself is already 256+ bits of signed, random-bearing
       data, so a fast unsalted hash is enough for equality lookup.

  Signing material is injected as an immutable SigningConfig at construction.
  Nothing in this module reads global settings.

Layer rule: no imports from api/ or mail/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import User
from core.config import SigningConfig

_ACCESS = "access"
_REFRESH = "refresh"

_ACCESS_CLAIMS = ("user_id", "username", "user_version")
_REFRESH_CLAIMS = ("user_id", "refresh_token_version")


def token_digest(token: str) -> str:
    """Return the SHA-256 hex digest of a token's exact string form."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_verification_token() -> str:
    """Return a 256-bit random token for email verification links."""
    return secrets.token_hex(32)


class TokenIssuer:
    """Mints and verifies the two JWT types.

    Usage:
        issuer = TokenIssuer(SigningConfig.from_settings(get_settings()))
        access = issuer.issue_access_token(user)
        claims = issuer.decode_access_token(access)
    """

    def __init__(self, config: SigningConfig) -> None:
        self._config = config

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds (for the expires_in response field)."""
        return int(self._config.access_expires.total_seconds())

    @property
    def refresh_expires_in(self) -> int:
        return int(self._config.refresh_expires.total_seconds())

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, user: User) -> str:
        payload = {
            "user_id": user.id,
            "role": user.role.name if user.role else None,
            "username": user.username,
            "user_version": user.user_version,
        }
        return self._encode(payload, _ACCESS, self._config.access_secret, self._config.access_expires)

    def issue_refresh_token(self, user: User) -> str:
        payload = {
            "user_id": user.id,
            "refresh_token_version": user.refresh_token_version,
        }
        return self._encode(payload, _REFRESH, self._config.refresh_secret, self._config.refresh_expires)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def decode_access_token(self, token: str) -> dict | None:
        """Verify an access token. Returns the payload dict or None on any failure."""
        return self._decode(token, _ACCESS, self._config.access_secret, _ACCESS_CLAIMS)

    def decode_refresh_token(self, token: str) -> dict | None:
        """Verify a refresh token. Returns the payload dict or None on any failure."""
        return self._decode(token, _REFRESH, self._config.refresh_secret, _REFRESH_CLAIMS)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _encode(self, payload: dict, token_type: str, secret: str, lifetime) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            **payload,
            "type": token_type,
            "jti": secrets.token_hex(16),
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(claims, secret, algorithm=self._config.algorithm)

    def _decode(self, token: str, token_type: str, secret: str, required: tuple[str, ...]) -> dict | None:
        try:
            payload = jwt.decode(token, secret, algorithms=[self._config.algorithm])
        except JWTError:
            return None
        if payload.get("type") != token_type:
            return None
        if any(name not in payload for name in required):
            return None
        return payload
