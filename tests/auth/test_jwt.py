"""Tests for access token management."""

from datetime import timedelta

import jwt
import pytest

from whbjj.auth.jwt import create_access_token, token_lifetime_seconds, verify_token
from whbjj.config import get_settings


class TestAccessToken:
    def test_create_and_verify(self):
        token = create_access_token(user_id=1, role="member", has_membership=False)
        payload = verify_token(token, expected_type="access")
        assert payload["sub"] == "1"
        assert payload["role"] == "member"
        assert payload["has_membership"] is False
        assert payload["type"] == "access"
        assert payload["iss"] == get_settings().jwt_issuer

    def test_membership_flag_embedded(self):
        token = create_access_token(user_id=2, role="admin", has_membership=True)
        payload = verify_token(token)
        assert payload["role"] == "admin"
        assert payload["has_membership"] is True

    def test_default_lifetime_is_thirty_days(self):
        token = create_access_token(user_id=1, role="member", has_membership=False)
        payload = verify_token(token)
        assert payload["exp"] - payload["iat"] == 30 * 86400
        assert token_lifetime_seconds() == 30 * 86400

    def test_expired_token_rejected(self):
        token = create_access_token(
            user_id=1, role="member", has_membership=False, expires_delta=timedelta(seconds=-10)
        )
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_type_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "1", "exp": 9999999999, "iss": settings.jwt_issuer, "type": "refresh"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token, expected_type="access")

    def test_wrong_issuer_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "1", "exp": 9999999999, "iss": "someone-else", "type": "access"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_tampered_signature_rejected(self):
        token = create_access_token(user_id=1, role="member", has_membership=False)
        forged = jwt.encode(
            jwt.decode(token, options={"verify_signature": False}),
            "another-secret-that-is-also-long-enough-here",
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(forged)
