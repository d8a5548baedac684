"""
auth/password_policy.py -- Password strength rules.

Pure functions, no I/O. check() reports each rule separately so a client can
tell the user which requirement failed; is_valid() is the conjunction used by
signup and password change.

MAX_PASSWORD_LENGTH bounds the input before bcrypt sees it. bcrypt itself
only looks at the first 72 bytes, but the cap keeps hashing cost and request
size predictable.
"""

from __future__ import annotations

from dataclasses import astuple, dataclass

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 100


@dataclass(frozen=True)
class PasswordChecks:
    length: bool
    not_name_or_email: bool
    uppercase: bool
    lowercase: bool
    digit: bool
    special: bool

    @property
    def ok(self) -> bool:
        return all(astuple(self))


def _is_special(ch: str) -> bool:
    return not ch.isalnum() and not ch.isspace()


def check(name: str, email: str, password: str) -> PasswordChecks:
    """Evaluate every rule against password and return the individual results.

    The name/email rule is case-insensitive: a password that appears inside
    the user's name or email address is rejected.
    """
    lowered = password.lower()
    return PasswordChecks(
        length=MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH,
        not_name_or_email=lowered not in name.lower() and lowered not in email.lower(),
        uppercase=any(ch.isupper() for ch in password),
        lowercase=any(ch.islower() for ch in password),
        digit=any(ch.isdigit() for ch in password),
        special=any(_is_special(ch) for ch in password),
    )


def is_valid(name: str, email: str, password: str) -> bool:
    """Return True if password satisfies every rule for this name/email."""
    return check(name, email, password).ok


def is_too_long(password: str) -> bool:
    return len(password) > MAX_PASSWORD_LENGTH
