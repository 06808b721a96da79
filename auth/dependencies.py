"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens are read in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "access_token" cookie -- browser clients.

get_current_claims() resolves the token through
AuthService.authenticate_access_token(), so a token minted before
invalidate_access_tokens()/invalidate_all_sessions() is rejected even though
its signature is still valid. Failures raise UnauthorizedError; the handler
in api/main.py renders the 401.

require_permission(code) wraps get_current_claims() and raises HTTP 403 if the
user's fresh permission set lacks the code.

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.models import AccessClaims
from auth.service import AuthService
from core.errors import UnauthorizedError


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get("access_token")


def get_current_claims(request: Request) -> AccessClaims:
    """Require a valid, current access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: AccessClaims = Depends(get_current_claims)): ...
    """
    token = _extract_token(request)
    if not token:
        raise UnauthorizedError("Authentication required")
    return get_auth_service(request).authenticate_access_token(token)


def require_permission(code: str):
    """Build a dependency that requires `code` in the caller's permissions.

    Permissions are fetched fresh on every call, never taken from the token.
    """

    def dependency(request: Request, claims: AccessClaims = Depends(get_current_claims)) -> AccessClaims:
        profile = get_auth_service(request).get_current_user(claims.user_id)
        if code not in profile.permissions:
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Missing required permission."},
            )
        return claims

    return dependency
