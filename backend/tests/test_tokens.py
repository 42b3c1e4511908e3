"""
Tests for the token service: issuing, verifying and rejecting JWTs.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from admin_panel.auth.tokens import Identity, TokenService
from admin_panel.errors import ConfigurationError
from admin_panel.users.models import UserRole


@dataclass
class FakeUser:
    id: int
    username: str
    role: UserRole


@pytest.fixture()
def tokens():
    return TokenService(secret="access-secret", refresh_secret="refresh-secret")


@pytest.fixture()
def user():
    return FakeUser(id=7, username="jane", role=UserRole.EDITOR)


class TestAccessToken:

    def test_roundtrip_carries_identity(self, tokens, user):
        token = tokens.issue_access_token(user)
        assert tokens.verify(token) == Identity(user_id=7, role=UserRole.EDITOR, username="jane")

    def test_claims_and_expiry(self, tokens, user):
        token = tokens.issue_access_token(user)
        claims = jwt.get_unverified_claims(token)
        assert claims["sub"] == "7"
        assert claims["role"] == "Editor"
        assert claims["type"] == "access"
        expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        remaining = expires - datetime.now(timezone.utc)
        assert timedelta(minutes=14) < remaining <= timedelta(minutes=15)

    def test_expired_token_is_rejected(self, user):
        tokens = TokenService("access-secret", "refresh-secret", access_ttl=timedelta(seconds=-1))
        token = tokens.issue_access_token(user)
        assert tokens.verify(token) is None

    def test_wrong_secret_is_rejected(self, tokens, user):
        other = TokenService(secret="someone-else", refresh_secret="refresh-secret")
        assert tokens.verify(other.issue_access_token(user)) is None

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_garbage_is_rejected(self, tokens, token):
        assert tokens.verify(token) is None

    def test_unknown_role_is_rejected(self, tokens):
        token = jwt.encode(
            {"sub": "1", "role": "Superuser", "type": "access",
             "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "access-secret",
            algorithm="HS256",
        )
        assert tokens.verify(token) is None

    def test_missing_secret_is_a_configuration_error(self, user):
        tokens = TokenService(secret=None, refresh_secret="refresh-secret")
        assert not tokens.is_configured
        with pytest.raises(ConfigurationError):
            tokens.issue_access_token(user)


class TestRefreshToken:

    def test_refresh_token_verifies_with_refresh_secret(self, tokens, user):
        token = tokens.issue_refresh_token(user)
        identity = tokens.verify_refresh(token)
        assert identity is not None
        assert identity.user_id == 7

    def test_refresh_token_lasts_seven_days(self, tokens, user):
        claims = jwt.get_unverified_claims(tokens.issue_refresh_token(user))
        expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        assert expires - datetime.now(timezone.utc) > timedelta(days=6, hours=23)

    def test_token_types_are_not_interchangeable(self, user):
        # Same secret for both, so only the type claim keeps them apart
        tokens = TokenService(secret="shared", refresh_secret="shared")
        assert tokens.verify(tokens.issue_refresh_token(user)) is None
        assert tokens.verify_refresh(tokens.issue_access_token(user)) is None
