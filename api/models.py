"""
API request and response models for the session REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal
domain representation. Route handlers map between the two.

Field limits here are transport guards only (empty strings, absurd sizes).
Password length and strength are decided by the service so the caller gets
the service's own error message, not a 422.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

# Loose shape check only: something@something.tld
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# Names and emails are stripped wherever they arrive; passwords never are,
# so stripping lives on these field types rather than in model_config.
_Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=320, pattern=EMAIL_PATTERN)]
_LookupEmail = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=320)]
_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
_Password = Annotated[str, Field(min_length=1, max_length=1024)]
_Token = Annotated[str, Field(min_length=1, max_length=4096)]


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


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


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup.

    name and email are stripped by their field types; the password is kept verbatim.
    """

    email: _Email
    name: _Name
    password: _Password


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: _LookupEmail
    password: _Password


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/token/refresh.

    access_token may be expired; it only needs a valid signature.
    """

    access_token: _Token
    refresh_token: _Token


class AccessTokenRequest(BaseModel):
    """Request body for operations that only need a live access token."""

    access_token: _Token


class CheckPasswordRequest(BaseModel):
    access_token: _Token
    old_password: _Password


class ChangePasswordRequest(BaseModel):
    access_token: _Token
    old_password: _Password
    new_password: _Password


class ForgotPasswordRequest(BaseModel):
    email: _LookupEmail


class ResetPasswordRequest(BaseModel):
    code: _Token


class AvailabilityRequest(BaseModel):
    name: _Name
    email: _Email


class BasicInfoRequest(BaseModel):
    access_token: _Token
    name: _Name
    email: _Email


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    access_token: str
    refresh_token: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    access_token: str
    refresh_token: str


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str


class PasswordCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool


class ResetCodeResponse(BaseModel):
    """The reset code is returned directly; delivery is out of band."""

    model_config = ConfigDict(frozen=True)

    code: str


class NewPasswordResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    password: str


class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    name_taken: bool
    email_taken: bool
