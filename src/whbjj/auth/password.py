"""Member password storage (argon2id) and the strength policy applied on register and change."""

from __future__ import annotations

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from whbjj.config import get_settings

# Raising any of these makes check_needs_rehash() true for existing hashes,
# and they are upgraded at the member's next login.
_hasher = PasswordHasher(time_cost=2, memory_cost=64 * 1024, parallelism=1, hash_len=32, salt_len=16, type=Type.ID)


class PasswordStrengthError(ValueError):
    """The password breaks one or more policy rules."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True on match. A mismatch or a malformed stored hash is False, never an error."""
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)


def password_problems(password: str) -> list[str]:
    """Every policy rule the password breaks, in a stable order."""
    if not password.strip():
        return ["Password cannot be empty"]

    settings = get_settings()
    problems = []
    if len(password) < settings.password_min_length:
        problems.append(f"Password must be at least {settings.password_min_length} characters")
    if len(password) > settings.password_max_length:
        problems.append(f"Password must not exceed {settings.password_max_length} characters")
    for check, label in ((str.isupper, "an uppercase letter"), (str.islower, "a lowercase letter"), (str.isdigit, "a digit")):
        if not any(check(c) for c in password):
            problems.append(f"Password must contain at least {label}")
    return problems


def validate_password_strength(password: str) -> None:
    """Raise PasswordStrengthError listing all broken rules."""
    problems = password_problems(password)
    if problems:
        raise PasswordStrengthError("; ".join(problems))
