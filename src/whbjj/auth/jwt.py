"""
Access tokens.

A token carries the user id, role and the membership flag as of issue time.
Nothing is stored server side; ``require_membership`` re-checks the store only
when the embedded flag is false.

``HS*`` algorithms sign with ``jwt_secret``. Anything else (``RS256``, ``ES256``)
reads PEM keys from ``jwt_private_key_path`` / ``jwt_public_key_path``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, NamedTuple, TypedDict

import jwt

from whbjj.config import get_settings

ACCESS = "access"


class SigningKeys(NamedTuple):
    sign: str
    verify: str


class AccessClaims(TypedDict):
    sub: str
    role: str
    has_membership: bool
    iat: datetime
    exp: datetime
    iss: str
    type: str


@lru_cache(maxsize=4)
def _keys_for(algorithm: str, secret: str, private_path: str, public_path: str) -> SigningKeys:
    if algorithm.startswith("HS"):
        return SigningKeys(secret, secret)
    return SigningKeys(Path(private_path).read_text(), Path(public_path).read_text())


def _signing_keys() -> SigningKeys:
    s = get_settings()
    return _keys_for(s.jwt_algorithm, s.jwt_secret, s.jwt_private_key_path, s.jwt_public_key_path)


def reset_keys() -> None:
    """Forget loaded PEM keys (after rotating key files, or between tests)."""
    _keys_for.cache_clear()


def token_lifetime_seconds() -> int:
    return int(timedelta(days=get_settings().jwt_access_token_expire_days).total_seconds())


def create_access_token(
    user_id: int,
    role: str,
    has_membership: bool,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign an access token; ``expires_delta`` overrides the configured lifetime."""
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(seconds=token_lifetime_seconds())
    claims: AccessClaims = {
        "sub": str(user_id),
        "role": role,
        "has_membership": has_membership,
        "iat": issued,
        "exp": issued + lifetime,
        "iss": settings.jwt_issuer,
        "type": ACCESS,
    }
    return jwt.encode(dict(claims), _signing_keys().sign, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = ACCESS) -> dict[str, Any]:
    """
    Decode and check signature, issuer, expiry and token type.

    Raises:
        jwt.InvalidTokenError: With a readable message for each failure.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _signing_keys().verify,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    token_type = payload.get("type")
    if token_type != expected_type:
        msg = f"Expected token type '{expected_type}', got '{token_type}'"
        raise jwt.InvalidTokenError(msg)
    return payload
