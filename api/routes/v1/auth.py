"""
api/routes/v1/auth.py -- Authentication and session REST endpoints.

Routes:
  POST /api/v1/auth/login                              -- password login; sets cookies
  POST /api/v1/auth/refresh                            -- new access token from refresh cookie
  POST /api/v1/auth/logout                             -- end refresh capability; clears cookies
  GET  /api/v1/auth/me                                 -- current user + fresh permissions
  POST /api/v1/auth/register                           -- create a PENDING account
  POST /api/v1/auth/verify-email                       -- activate account from email link
  POST /api/v1/auth/users/{id}/invalidate-sessions     -- force full logout (users:manage)
  POST /api/v1/auth/users/{id}/invalidate-access       -- kill access tokens only (users:manage)

Security:
  [H2] POST /login and /register are rate-limited per IP.
  [C1] CredentialVerifier provides timing equalization -- never inline the
       lookup + bcrypt check here.
  [M5] Cache-Control: no-store on every response that carries a token.
  The refresh token is only ever sent as an httpOnly cookie scoped to
  /api/v1/auth, never in a response body.

Service failures (UnauthorizedError, NotFoundError, ValidationError) propagate
to the exception handler in api/main.py.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserProfileResponse,
    VerifyEmailRequest,
)
from auth.dependencies import get_auth_service, get_current_claims, require_permission
from auth.models import AccessClaims, Registration
from auth.service import INVALID_REFRESH_TOKEN, AuthService
from core.config import get_settings
from core.errors import UnauthorizedError

# Auth policy:
# - POST /auth/login, /auth/refresh, /auth/register, /auth/verify-email: public
# - POST /auth/logout, GET /auth/me:                                     requires access token
# - POST /auth/users/{id}/invalidate-*:                                  requires users:manage
router = APIRouter()

REFRESH_COOKIE = "refresh_token"
ACCESS_COOKIE = "access_token"
_REFRESH_COOKIE_PATH = "/api/v1/auth"


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def _set_access_cookie(response: JSONResponse, token: str, max_age: int) -> None:
    """httponly + samesite=lax; secure only when SECURE_COOKIES=true (production)."""
    response.set_cookie(
        ACCESS_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=get_settings().secure_cookies,
        max_age=max_age,
    )


def _set_refresh_cookie(response: JSONResponse, token: str, max_age: int) -> None:
    response.set_cookie(
        REFRESH_COOKIE,
        value=token,
        httponly=True,
        samesite="strict",
        secure=get_settings().secure_cookies,
        max_age=max_age,
        path=_REFRESH_COOKIE_PATH,
    )


def _no_store(response: JSONResponse) -> JSONResponse:
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return response


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with username and password.

    Unknown user, deleted user, and wrong password all produce the same 401
    body ("Invalid credentials").
    """
    result = service.login(body.username, body.password)
    expires_in = service.issuer.access_expires_in
    resp = JSONResponse(
        content=LoginResponse(
            access_token=result.access_token,
            expires_in=expires_in,
            user=UserProfileResponse.from_profile(result.user),
        ).model_dump(mode="json"),
    )
    _set_access_cookie(resp, result.access_token, expires_in)
    _set_refresh_cookie(resp, result.refresh_token, service.issuer.refresh_expires_in)
    return _no_store(resp)


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(
    request: Request,
    body: Optional[RefreshRequest] = None,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Issue a new access token. The refresh cookie itself is left unchanged."""
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)
    result = service.refresh(token)
    expires_in = service.issuer.access_expires_in
    resp = JSONResponse(
        content=RefreshResponse(access_token=result.access_token, expires_in=expires_in).model_dump(),
    )
    _set_access_cookie(resp, result.access_token, expires_in)
    return _no_store(resp)


@limiter.limit(_login_rate_limit)  # [H2]
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create a PENDING account and email a verification link. Does not log in."""
    user = service.create_user(
        Registration(
            email=body.email,
            username=body.username,
            name=body.name,
            password=body.password,
            phone_number=body.phone_number,
        )
    )
    return RegisterResponse(id=user.id, username=user.username, email=user.email)


@router.post("/auth/verify-email", response_model=MessageResponse)
def verify_email(
    body: VerifyEmailRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.verify_email(body.token)
    return MessageResponse(message="Email verified.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    claims: AccessClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Clear the stored refresh digest and the session cookies.

    The access token stays valid until it expires; clients should drop it.
    """
    service.logout(claims.user_id)
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie(ACCESS_COOKIE)
    resp.delete_cookie(REFRESH_COOKIE, path=_REFRESH_COOKIE_PATH)
    return resp


@router.get("/auth/me", response_model=UserProfileResponse)
def me(
    claims: AccessClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """Return the current user with permissions fetched fresh from RBAC."""
    return UserProfileResponse.from_profile(service.get_current_user(claims.user_id))


# ---------------------------------------------------------------------------
# Session administration (users:manage)
# ---------------------------------------------------------------------------


@router.post("/auth/users/{user_id}/invalidate-sessions", response_model=MessageResponse)
def invalidate_sessions(
    user_id: str,
    claims: AccessClaims = Depends(require_permission("users:manage")),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Force a full logout: every access and refresh token the user holds dies."""
    service.invalidate_all_sessions(user_id)
    return MessageResponse(message="All sessions invalidated.")


@router.post("/auth/users/{user_id}/invalidate-access", response_model=MessageResponse)
def invalidate_access(
    user_id: str,
    claims: AccessClaims = Depends(require_permission("users:manage")),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Kill outstanding access tokens; the user's refresh token keeps working."""
    service.invalidate_access_tokens(user_id)
    return MessageResponse(message="Access tokens invalidated.")
