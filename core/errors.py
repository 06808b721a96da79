"""
core/errors.py -- Typed failures raised by the auth core.

Every service-level failure is one of three kinds. The HTTP layer maps them
to a status code and the {"error": {"code", "message"}} envelope with a single
exception handler (api/main.py); other callers (CLI, tests) catch them
directly.

  UnauthorizedError (401) -- bad credentials, inactive/unverified account,
      invalid/expired/mismatched token, replayed refresh token.
  NotFoundError     (404) -- an already-authorized operation names a user id
      that does not exist.
  ValidationError   (400) -- registration conflicts and missing configuration
      (e.g. the default role row).

Credential and token messages are deliberately generic. Do not put the
failing check into the message -- log it instead.

Layer rule: core/ is the kernel. No imports from api/, auth/, or mail/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth-core failures mapped to HTTP responses."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthorizedError(AuthError):
    status_code = 401
    code = "unauthorized"


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
