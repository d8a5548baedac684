"""
auth/tokens.py -- Token signing, password hashing and random credentials.

Security design decisions:
  JWT: python-jose with HS256. TokenSigner is constructed with the secret
       explicitly (no module-level settings read), so tests can run several
       signers with distinct secrets side by side. Two claim sets are signed:
         access token  {"userId": int}  -- 1 hour by default
         reset code    {"email": str}   -- 5 minutes by default
       Verification raises TokenExpired or TokenMalformed; the caller picks
       the domain error. Refresh needs the user id out of an *expired* access
       token, which is a separate method (decode_access_token_ignoring_expiry)
       rather than a flag on verify, so no other call site can weaken its
       check by accident.

  Passwords: bcrypt used directly (no passlib wrapper) with a fixed work
       factor. bcrypt only reads the first 72 bytes and recent releases raise
       on longer input, so both hash and verify truncate identically. The
       _DUMMY_HASH constant lets login run bcrypt even when the email is
       unknown, so response time does not reveal account existence.

  Refresh tokens: 64 random bytes, base64. Opaque, stored verbatim -- they are
       looked up together with the user id, so a deterministic hash buys
       nothing over the raw value at this scale.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import base64
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpired, TokenMalformed

logger = logging.getLogger("sessionauth.auth")

_ALGORITHM = "HS256"

BCRYPT_ROUNDS = 10
_BCRYPT_MAX_BYTES = 72

ACCESS_TOKEN_SECONDS = 60 * 60
RESET_CODE_SECONDS = 5 * 60


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at import so the first login is not measurably slower.
_DUMMY_HASH: str = hash_password("sessionauth_timing_dummy")


def verify_password_or_dummy(plain: str, hashed: str | None, dummy_hash: str = _DUMMY_HASH) -> bool:
    """Run bcrypt whether or not there is a real hash to compare against.

    Returns False when hashed is None, after spending the work factor of
    dummy_hash. Callers hashing at a non-default cost pass a dummy hash made
    at that same cost.
    """
    if hashed is None:
        verify_password(plain, dummy_hash)
        return False
    return verify_password(plain, hashed)


# ---------------------------------------------------------------------------
# Random credentials
# ---------------------------------------------------------------------------


def generate_refresh_token() -> str:
    """64 random bytes, base64-encoded (88 characters)."""
    return base64.b64encode(secrets.token_bytes(64)).decode("ascii")


def generate_password() -> str:
    """Random replacement password handed out by the reset flow.

    8 random bytes, base64-encoded (12 characters). It is not checked against
    the password policy; the user is expected to change it after logging in.
    """
    return base64.b64encode(secrets.token_bytes(8)).decode("ascii")


# ---------------------------------------------------------------------------
# JWT signing
# ---------------------------------------------------------------------------


class TokenSigner:
    """Signs and verifies access tokens and password-reset codes.

    Usage:
        signer = TokenSigner(get_settings().secret_key)
        token = signer.sign_access_token(42)
        signer.verify_access_token(token)  # -> 42

    Lifetimes are in seconds. A non-positive lifetime yields tokens that are
    already expired, which the tests rely on.
    """

    def __init__(
        self,
        secret: str,
        access_token_seconds: int = ACCESS_TOKEN_SECONDS,
        reset_code_seconds: int = RESET_CODE_SECONDS,
    ) -> None:
        if not secret:
            raise ValueError("TokenSigner requires a non-empty secret.")
        self._secret = secret
        self.access_token_seconds = access_token_seconds
        self.reset_code_seconds = reset_code_seconds

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sign(self, claims: dict, lifetime_seconds: int) -> str:
        payload = dict(claims)
        payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=lifetime_seconds)
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def _decode(self, token: str, verify_exp: bool = True) -> dict:
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": verify_exp},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired(str(exc)) from exc
        except JWTError as exc:
            raise TokenMalformed(str(exc)) from exc
        except (AttributeError, TypeError) as exc:
            # Non-string input never reaches the JWS parser intact.
            raise TokenMalformed("token is not a string") from exc

    @staticmethod
    def _user_id(payload: dict) -> int:
        user_id = payload.get("userId")
        # bool is an int subclass; a forged {"userId": true} is not an id.
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise TokenMalformed("userId claim missing or not an integer")
        return user_id

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------

    def sign_access_token(self, user_id: int) -> str:
        return self._sign({"userId": user_id}, self.access_token_seconds)

    def verify_access_token(self, token: str) -> int:
        """Return the user id of a token whose signature and expiry both hold.

        Raises TokenExpired for a well-formed but expired token, TokenMalformed
        for anything else.
        """
        return self._user_id(self._decode(token))

    def decode_access_token_ignoring_expiry(self, token: str) -> int:
        """Return the user id after checking signature and claim shape only.

        Only the refresh flow may call this: it lets a client trade an expired
        access token plus a stored refresh token for a new access token.
        """
        return self._user_id(self._decode(token, verify_exp=False))

    # ------------------------------------------------------------------
    # Password-reset codes
    # ------------------------------------------------------------------

    def sign_reset_code(self, email: str) -> str:
        return self._sign({"email": email}, self.reset_code_seconds)

    def verify_reset_code(self, code: str) -> str:
        """Return the email embedded in a valid, unexpired reset code."""
        email = self._decode(code).get("email")
        if not isinstance(email, str) or not email:
            raise TokenMalformed("email claim missing")
        return email
