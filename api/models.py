"""
API request and response models for UserHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request bodies reject unknown fields (extra="forbid"): clients must not send
data the server silently ignores.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from auth.models import UserProfile
from auth.passwords import MAX_PASSWORD_BYTES

# Passwords are never stripped; only identity fields go through _strip.
_STRICT = ConfigDict(extra="forbid")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = _STRICT

    username: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return _strip(value)


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh -- empty; the token comes from the cookie."""

    model_config = _STRICT


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Passwords are limited to 64 characters and to bcrypt's 72 bytes, which
    multibyte input reaches first. Passwords keep surrounding whitespace;
    confirm_password must match exactly.
    """

    model_config = _STRICT

    email: EmailStr
    username: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=3, max_length=255)
    phone_number: Optional[str] = Field(default=None, min_length=12, max_length=32)
    password: str = Field(min_length=8, max_length=64)
    confirm_password: str = Field(min_length=8, max_length=64)

    @field_validator("email", "username", "name", "phone_number", mode="before")
    @classmethod
    def strip_identity(cls, value):
        return _strip(value)

    @field_validator("password", "confirm_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class VerifyEmailRequest(BaseModel):
    """Request body for POST /api/v1/auth/verify-email."""

    model_config = _STRICT

    token: str = Field(min_length=1, max_length=128)

    @field_validator("token", mode="before")
    @classmethod
    def strip_token(cls, value):
        return _strip(value)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserProfileResponse(BaseModel):
    """Public view of a user. Never includes hashes or version counters."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    username: str
    name: str
    role: Optional[str]
    permissions: list[str] = Field(default_factory=list)
    status: Optional[str] = None
    email_verified_at: Optional[datetime] = None
    profile_picture_url: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            username=profile.username,
            name=profile.name,
            role=profile.role,
            permissions=list(profile.permissions),
            status=profile.status.value if profile.status else None,
            email_verified_at=profile.email_verified_at,
            profile_picture_url=profile.profile_picture_url,
        )


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login. The refresh token travels in a cookie only."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfileResponse


class RefreshResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    message: str = "Registration successful. Check your email to verify your account."


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
