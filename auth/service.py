"""
auth/service.py -- SessionService: signup, login, refresh, logout, account
deletion, password change and the forgot-password flow.

Pattern: Service layer over two repositories (UserStore, RefreshTokenStore)
and a TokenSigner. Every dependency is injected through the constructor; the
service holds no other state, so one instance can serve concurrent requests
from FastAPI's thread pool.

Error policy:
  Domain failures are raised as AuthError subclasses at the point of
  detection and reach the caller unchanged. Each public method is wrapped by
  @operation(default_message): anything that is not an AuthError (storage
  failure, bcrypt error, bug) is logged with its traceback and replaced by
  InternalError(default_message). The caller never sees internal error text.
  No operation retries.

Account-standing checks:
  Access tokens carry only a user id and there is no revocation list, so a
  token outlives a block or deletion until it expires. Operations that must
  honour account standing re-read the user row: login and change_password
  refuse blocked accounts. refresh_access_token deliberately does not look
  at the user at all -- it only proves possession of a stored refresh token.

Refresh-token cap:
  login() counts the user's tokens before minting one. Up to the cap a fresh
  token is created; past it the newest existing token is handed back
  instead. Count and insert are separate statements, so concurrent logins
  can overshoot the cap slightly. The cap bounds table growth from scripted
  logins; it is not a security boundary.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from auth import password_policy
from auth.errors import (
    AuthError,
    BadRequest,
    Conflict,
    Forbidden,
    InternalError,
    NotFound,
    TokenError,
    TokenExpired,
    TokenMalformed,
    Unauthorized,
)
from auth.models import Availability, LoginResult, RefreshToken, SignupResult, User
from auth.store import RefreshTokenStore, UserStore
from auth.tokens import (
    BCRYPT_ROUNDS,
    TokenSigner,
    generate_password,
    generate_refresh_token,
    hash_password,
    verify_password,
    verify_password_or_dummy,
)

logger = logging.getLogger("sessionauth.auth")

MAX_USERS = 2**32 - 1
REFRESH_TOKEN_DAYS = 30
REFRESH_TOKEN_CAP = 100

_UNEXPECTED = "An unexpected error occurred."
_ALREADY_TAKEN = "Email or name already taken."
_BLOCKED = "This account has been blocked. Please contact the admin."


def operation(default_message: str):
    """Downgrade unexpected exceptions to InternalError(default_message).

    AuthError subclasses pass through untouched.
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except AuthError:
                raise
            except Exception as exc:
                logger.exception("%s failed unexpectedly", fn.__name__)
                raise InternalError(default_message) from exc

        return wrapper

    return decorator


class SessionService:
    """Authentication and session lifecycle.

    Usage:
        service = SessionService(UserStore(), RefreshTokenStore(), TokenSigner(secret))
        result = service.signup("a@x.com", "alice1", "Str0ng!Pwd")
        service.logout(result.access_token)
    """

    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        signer: TokenSigner,
        *,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
        refresh_token_days: int = REFRESH_TOKEN_DAYS,
        refresh_token_cap: int = REFRESH_TOKEN_CAP,
        max_users: int = MAX_USERS,
    ) -> None:
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.signer = signer
        self.bcrypt_rounds = bcrypt_rounds
        self.refresh_token_lifetime = timedelta(days=refresh_token_days)
        self.refresh_token_cap = refresh_token_cap
        self.max_users = max_users
        # Same cost as real hashes so unknown emails take as long as wrong passwords.
        self.dummy_hash = hash_password("sessionauth_timing_dummy", rounds=bcrypt_rounds)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _hash(self, plain: str) -> str:
        return hash_password(plain, rounds=self.bcrypt_rounds)

    def _create_refresh_token(self, user_id: int) -> str:
        token = generate_refresh_token()
        expiration = datetime.now(timezone.utc) + self.refresh_token_lifetime
        self.refresh_tokens.create(RefreshToken(user_id=user_id, token=token, expiration=expiration))
        return token

    def _issue_refresh_token(self, user_id: int) -> str:
        """Create a refresh token unless the user is past the cap."""
        count = self.refresh_tokens.count_for_user(user_id)
        if count <= self.refresh_token_cap:
            return self._create_refresh_token(user_id)

        newest = self.refresh_tokens.find_newest(user_id)
        if newest is None:
            # Tokens were deleted between the count and this lookup.
            raise InternalError("Could not issue a refresh token.")
        logger.info("Refresh token cap reached for user %s (%d tokens); reusing newest", user_id, count)
        return newest.token

    def _require_access(self, access_token: str, error: AuthError) -> int:
        """Strict verification: signature and expiry must both hold."""
        try:
            return self.signer.verify_access_token(access_token)
        except TokenError as exc:
            logger.info("Rejected access token: %s", type(exc).__name__)
            raise error from exc

    def _require_user(self, user_id: int) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    def _set_password(self, user_id: int, plain: str) -> None:
        """Persist a new hash and end every session of the user."""
        self.users.update_password_hash(user_id, self._hash(plain))
        removed = self.refresh_tokens.delete_for_user(user_id)
        logger.info("Password updated for user %s; %d refresh tokens revoked", user_id, removed)

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    @operation(_UNEXPECTED)
    def signup(self, email: str, name: str, password: str) -> SignupResult:
        """Create an account and open its first session."""
        if self.users.count() >= self.max_users:
            raise Forbidden("User limit reached.")
        if password_policy.is_too_long(password):
            raise BadRequest("Password too long.")
        if not password_policy.is_valid(name, email, password):
            raise BadRequest("Invalid password.")

        try:
            user_id = self.users.create_user(User(name=name, email=email, password_hash=self._hash(password)))
        except IntegrityError as exc:
            raise Conflict(_ALREADY_TAKEN) from exc

        access_token = self.signer.sign_access_token(user_id)
        refresh_token = self._create_refresh_token(user_id)
        logger.info("User %s signed up", user_id)
        return SignupResult(id=user_id, access_token=access_token, refresh_token=refresh_token)

    @operation(_UNEXPECTED)
    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials and open a session.

        Unknown email and wrong password produce the same error. A blocked
        account gets its own message only after the password matched.
        """
        user = self.users.find_by_email(email)
        matched = verify_password_or_dummy(password, user.password_hash if user else None, self.dummy_hash)
        if user is None or not matched:
            logger.warning("Failed login attempt")
            raise Unauthorized("Invalid credentials.")
        if user.is_blocked:
            logger.warning("Blocked user %s attempted to log in", user.id)
            raise Unauthorized(_BLOCKED)

        access_token = self.signer.sign_access_token(user.id)
        refresh_token = self._issue_refresh_token(user.id)
        logger.info("User %s logged in", user.id)
        return LoginResult(id=user.id, name=user.name, access_token=access_token, refresh_token=refresh_token)

    @operation(_UNEXPECTED)
    def check_name_and_email(self, name: str, email: str) -> Availability:
        name_taken, email_taken = self.users.name_or_email_taken(name, email)
        return Availability(name_taken=name_taken, email_taken=email_taken)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @operation(_UNEXPECTED)
    def refresh_access_token(self, access_token: str, refresh_token: str) -> str:
        """Trade a (possibly expired) access token plus a refresh token for a new access token.

        The access token's expiry is ignored but its signature is not. The
        refresh token is neither rotated nor extended, and the user row is
        not consulted.
        """
        try:
            user_id = self.signer.decode_access_token_ignoring_expiry(access_token)
        except TokenMalformed as exc:
            raise Unauthorized("Invalid access token.") from exc

        if self.refresh_tokens.find(refresh_token, user_id) is None:
            logger.info("Unknown refresh token presented for user %s", user_id)
            raise Unauthorized("Invalid refresh token.")
        return self.signer.sign_access_token(user_id)

    @operation(_UNEXPECTED)
    def logout(self, access_token: str) -> None:
        """End every session of the token's user."""
        user_id = self._require_access(access_token, Forbidden("Invalid user"))
        removed = self.refresh_tokens.delete_for_user(user_id)
        logger.info("User %s logged out; %d refresh tokens revoked", user_id, removed)

    @operation(_UNEXPECTED)
    def delete_account(self, access_token: str) -> None:
        """Delete the user's refresh tokens, then the user row."""
        user_id = self._require_access(access_token, Forbidden("Invalid user"))
        self.refresh_tokens.delete_for_user(user_id)
        self.users.delete_user(user_id)
        logger.info("User %s deleted their account", user_id)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    @operation(_UNEXPECTED)
    def check_old_password(self, access_token: str, old_password: str) -> bool:
        user_id = self._require_access(access_token, Unauthorized("Invalid access token."))
        user = self._require_user(user_id)
        if not verify_password(old_password, user.password_hash):
            raise Unauthorized("Invalid old password.")
        return True

    @operation(_UNEXPECTED)
    def change_password(self, access_token: str, old_password: str, new_password: str) -> None:
        """Replace the password and revoke every refresh token of the user.

        The new password is checked against the user's current name/email.
        """
        user_id = self._require_access(access_token, Unauthorized("Invalid access token."))
        user = self._require_user(user_id)
        if user.is_blocked:
            raise Forbidden(_BLOCKED)
        if not verify_password(old_password, user.password_hash):
            raise Unauthorized("Invalid old password.")
        if password_policy.is_too_long(new_password) or not password_policy.is_valid(
            user.name, user.email, new_password
        ):
            raise Forbidden("Invalid new password.")
        self._set_password(user_id, new_password)

    @operation(_UNEXPECTED)
    def get_forgot_password_code(self, email: str) -> str:
        """Return a 5-minute reset code for email.

        Delivering the code (e-mail, SMS) is the caller's job. Unlike login,
        an unknown address is reported as NotFound.
        """
        if self.users.find_by_email(email) is None:
            raise NotFound("No such user with that email.")
        logger.info("Password reset code issued")
        return self.signer.sign_reset_code(email)

    @operation(_UNEXPECTED)
    def reset_password(self, code: str) -> str:
        """Set a random password for the code's account and return it.

        The code is not consumed: it keeps working until it expires.
        """
        try:
            email = self.signer.verify_reset_code(code)
        except TokenExpired as exc:
            raise Forbidden("Code has expired.") from exc
        except TokenMalformed as exc:
            raise Unauthorized("Invalid code.") from exc
        except TokenError as exc:
            raise InternalError("An unexpected error occurred in code verification.") from exc

        user = self.users.find_by_email(email)
        if user is None:
            raise NotFound("User doesn't exist anymore.")
        new_password = generate_password()
        self._set_password(user.id, new_password)
        return new_password

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    @operation(_UNEXPECTED)
    def update_basic_info(self, access_token: str, name: str, email: str) -> None:
        """Change name and email. Sessions are left alone."""
        user_id = self._require_access(access_token, Unauthorized("Invalid access token."))
        self._require_user(user_id)
        try:
            self.users.update_basic_info(user_id, name, email)
        except IntegrityError as exc:
            raise Conflict(_ALREADY_TAKEN) from exc
        logger.info("User %s updated basic info", user_id)
