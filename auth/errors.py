"""
auth/errors.py -- Typed failures raised by the auth subsystem.

Two families:

  AuthError and subclasses: domain failures surfaced verbatim to the caller.
      Each carries a stable ``kind`` (machine-readable code) and the HTTP
      ``status_code`` the API layer answers with. They are not HTTP
      exceptions -- auth/ never imports fastapi -- the mapping lives in
      api/main.py.

  TokenError and subclasses: raised by TokenSigner. SessionService catches
      them and translates to the AuthError appropriate for the operation, so
      they never reach the API layer.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for domain failures returned to the caller."""

    kind: str = "auth_error"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(AuthError):
    kind = "bad_request"
    status_code = 400


class Unauthorized(AuthError):
    kind = "unauthorized"
    status_code = 401


class Forbidden(AuthError):
    kind = "forbidden"
    status_code = 403


class NotFound(AuthError):
    kind = "not_found"
    status_code = 404


class Conflict(AuthError):
    kind = "conflict"
    status_code = 409


class InternalError(AuthError):
    """Unexpected failure. The message is always a fixed, caller-safe string."""

    kind = "internal_error"
    status_code = 500


# ---------------------------------------------------------------------------
# Token verification failures
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for signed-token verification failures."""


class TokenExpired(TokenError):
    """Signature is valid but the ``exp`` claim has passed."""


class TokenMalformed(TokenError):
    """Signature, structure or claim shape is invalid."""
