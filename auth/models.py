"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; stores and the service do the work. Result types returned by
SessionService live here too so the API layer can map them without reaching
into the service module.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered account.

    password_hash is a bcrypt hash; the plaintext is never stored.
    is_blocked is managed by an administrator outside this subsystem --
    SessionService only reads it (login and password change refuse blocked
    accounts).
    """

    name: str
    email: str
    password_hash: str
    id: int | None = None
    is_blocked: bool = False
    created_at: str | None = None


@dataclass
class RefreshToken:
    """A long-lived opaque session credential.

    user_id is a reference, not ownership: the user row may be deleted
    independently, leaving orphaned tokens that delete_account() cleans up.
    id reflects insertion order and breaks ties between equal expirations.
    """

    user_id: int
    token: str
    expiration: datetime
    id: int | None = None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignupResult:
    id: int
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    id: int
    name: str
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Availability:
    """Which of a candidate name/email pair is already registered."""

    name_taken: bool
    email_taken: bool
