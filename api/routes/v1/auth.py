"""
api/routes/v1/auth.py -- Session REST endpoints.

Routes (all POST, JSON bodies; tokens travel in the body):
  /api/v1/auth/signup            -- create account; 201 + token pair
  /api/v1/auth/login             -- password login; token pair
  /api/v1/auth/availability      -- is this name / email already registered?
  /api/v1/auth/token/refresh     -- (expired) access token + refresh token -> access token
  /api/v1/auth/logout            -- revoke every refresh token of the user
  /api/v1/auth/delete-account    -- revoke tokens, delete user
  /api/v1/auth/password/check    -- does old_password match?
  /api/v1/auth/password/change   -- set a new password, revoke sessions
  /api/v1/auth/password/forgot   -- issue a 5-minute reset code
  /api/v1/auth/password/reset    -- redeem a reset code for a generated password
  /api/v1/auth/basic-info        -- change name / email

Handlers are plain def (not async): bcrypt and the SQLAlchemy calls block,
so FastAPI runs them in its thread pool.

Failures are AuthError subclasses raised by SessionService; the exception
handler in api/main.py turns them into the shared error envelope. Nothing in
this module builds error responses itself.

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  Cache-Control: no-store on every response that carries a credential.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import (
    AccessTokenRequest,
    AccessTokenResponse,
    AvailabilityRequest,
    AvailabilityResponse,
    BasicInfoRequest,
    ChangePasswordRequest,
    CheckPasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    NewPasswordResponse,
    PasswordCheckResponse,
    RefreshRequest,
    ResetCodeResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
)
from auth.dependencies import get_session_service
from auth.service import SessionService
from core.config import get_settings

router = APIRouter()

# Read once at import: slowapi only enforces string limits through the middleware.
_LOGIN_LIMIT = get_settings().login_rate_limit


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(
    body: SignupRequest,
    response: Response,
    service: SessionService = Depends(get_session_service),
) -> SignupResponse:
    """Create an account and return its first token pair.

    409 when the email or the name is already registered (which one is not
    disclosed).
    """
    result = service.signup(body.email, body.name, body.password)
    _no_store(response)
    return SignupResponse(id=result.id, access_token=result.access_token, refresh_token=result.refresh_token)


@limiter.limit(_LOGIN_LIMIT)  # must stay ABOVE @router to keep FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    service: SessionService = Depends(get_session_service),
) -> LoginResponse:
    """Authenticate with email and password.

    Wrong email and wrong password share one 401 message.
    """
    result = service.login(body.email, body.password)
    _no_store(response)
    return LoginResponse(
        id=result.id,
        name=result.name,
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )


@router.post("/auth/availability", response_model=AvailabilityResponse)
def availability(
    body: AvailabilityRequest,
    service: SessionService = Depends(get_session_service),
) -> AvailabilityResponse:
    result = service.check_name_and_email(body.name, body.email)
    return AvailabilityResponse(name_taken=result.name_taken, email_taken=result.email_taken)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/auth/token/refresh", response_model=AccessTokenResponse)
def refresh_access_token(
    body: RefreshRequest,
    response: Response,
    service: SessionService = Depends(get_session_service),
) -> AccessTokenResponse:
    """Issue a new access token. The refresh token itself is unchanged."""
    token = service.refresh_access_token(body.access_token, body.refresh_token)
    _no_store(response)
    return AccessTokenResponse(access_token=token)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    body: AccessTokenRequest,
    service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    """Revoke every refresh token of the user (all devices)."""
    service.logout(body.access_token)
    return MessageResponse(message="Logged out successfully.")


@router.post("/auth/delete-account", response_model=MessageResponse)
def delete_account(
    body: AccessTokenRequest,
    service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    service.delete_account(body.access_token)
    return MessageResponse(message="User deleted successfully.")


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@router.post("/auth/password/check", response_model=PasswordCheckResponse)
def check_old_password(
    body: CheckPasswordRequest,
    service: SessionService = Depends(get_session_service),
) -> PasswordCheckResponse:
    return PasswordCheckResponse(valid=service.check_old_password(body.access_token, body.old_password))


@router.post("/auth/password/change", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    """Change the password. Every refresh token of the user is revoked."""
    service.change_password(body.access_token, body.old_password, body.new_password)
    return MessageResponse(message="Password updated successfully.")


@router.post("/auth/password/forgot", response_model=ResetCodeResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    response: Response,
    service: SessionService = Depends(get_session_service),
) -> ResetCodeResponse:
    code = service.get_forgot_password_code(body.email)
    _no_store(response)
    return ResetCodeResponse(code=code)


@router.post("/auth/password/reset", response_model=NewPasswordResponse)
def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    service: SessionService = Depends(get_session_service),
) -> NewPasswordResponse:
    """Redeem a reset code. The generated password is returned once."""
    password = service.reset_password(body.code)
    _no_store(response)
    return NewPasswordResponse(password=password)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.post("/auth/basic-info", response_model=MessageResponse)
def update_basic_info(
    body: BasicInfoRequest,
    service: SessionService = Depends(get_session_service),
) -> MessageResponse:
    service.update_basic_info(body.access_token, body.name, body.email)
    return MessageResponse(message="User updated successfully.")
