"""Learner account passwords: argon2id hashing and the signup strength policy.

Hash cost comes from settings so deployments can raise it over time;
``check_needs_rehash`` then flags older hashes and login upgrades them.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

import argon2

from skillpath.config import get_settings

# (description, predicate) pairs; every class must appear at least once
_REQUIRED_CHARACTERS: list[tuple[str, Callable[[str], bool]]] = [
    ("uppercase letter", str.isupper),
    ("lowercase letter", str.islower),
    ("digit", str.isdigit),
]

# Email names shorter than this are not checked
_MIN_EMAIL_NAME_CHECK = 3


class PasswordStrengthError(ValueError):
    """Raised when a signup password fails the strength policy."""


@lru_cache(maxsize=4)
def _hasher_for(time_cost: int, memory_kib: int) -> argon2.PasswordHasher:
    return argon2.PasswordHasher(
        time_cost=time_cost,
        memory_cost=memory_kib,
        parallelism=1,
        hash_len=32,
        salt_len=16,
        type=argon2.Type.ID,
    )


def _hasher() -> argon2.PasswordHasher:
    settings = get_settings()
    return _hasher_for(settings.password_hash_time_cost, settings.password_hash_memory_kib)


def hash_password(password: str) -> str:
    return _hasher().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches. Mismatches and malformed hashes give False."""
    try:
        return _hasher().verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """True if the hash was made with a cost other than the configured one."""
    return _hasher().check_needs_rehash(password_hash)


def validate_password_strength(password: str, email: str | None = None) -> None:
    """
    Enforce the signup password policy.

    The password must fit the configured length bounds, mix upper case,
    lower case and digits, and must not contain the name part of the
    learner's email address.

    Raises:
        PasswordStrengthError: naming every character class that is missing,
            or the first other rule that fails.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise PasswordStrengthError(msg)

    missing = [name for name, present in _REQUIRED_CHARACTERS if not any(present(c) for c in password)]
    if missing:
        msg = "Password must contain at least one " + ", one ".join(missing)
        raise PasswordStrengthError(msg)

    if email:
        name = email.split("@", 1)[0].strip().lower()
        if len(name) >= _MIN_EMAIL_NAME_CHECK and name in password.lower():
            msg = "Password must not contain your email address"
            raise PasswordStrengthError(msg)
