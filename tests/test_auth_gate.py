from datetime import datetime, timedelta, timezone

import jwt
import pytest
from beanie import PydanticObjectId

from callisto.api.auth import authenticate
from callisto.errors import InvalidTokenError, MissingTokenError
from callisto.services.token_service import ALGORITHM, TokenClaims, TokenService

from conftest import TEST_SECRET


@pytest.fixture
def claims() -> TokenClaims:
    return TokenClaims(user_id=str(PydanticObjectId()), email="ada@example.com")


class TestTokenService:
    def test_round_trip(self, tokens, claims):
        assert tokens.verify(tokens.issue(claims)) == claims

    def test_expired_token_is_invalid(self, claims):
        service = TokenService(TEST_SECRET, timedelta(seconds=-1))
        assert service.verify(service.issue(claims)) is None

    def test_other_secret_is_invalid(self, tokens, claims):
        other = TokenService("another-secret-0123456789abcdef0123456789", timedelta(days=1))
        assert tokens.verify(other.issue(claims)) is None

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_token_is_invalid(self, tokens, token):
        assert tokens.verify(token) is None

    def test_token_without_user_id_is_invalid(self, tokens):
        token = jwt.encode(
            {"email": "x@example.com", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            TEST_SECRET,
            algorithm=ALGORITHM,
        )
        assert tokens.verify(token) is None

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService("", timedelta(days=1))


class TestAuthenticate:
    def test_resolves_user_id(self, tokens, claims):
        ctx = authenticate({"authorization": f"Bearer {tokens.issue(claims)}"}, tokens)
        assert str(ctx.user_id) == claims.user_id
        assert ctx.email == claims.email

    def test_scheme_is_case_insensitive(self, tokens, claims):
        ctx = authenticate({"authorization": f"bearer {tokens.issue(claims)}"}, tokens)
        assert str(ctx.user_id) == claims.user_id

    @pytest.mark.parametrize("headers", [{}, {"authorization": ""}, {"authorization": "Bearer "}, {"authorization": "Basic abc"}])
    def test_missing_token(self, tokens, headers):
        with pytest.raises(MissingTokenError):
            authenticate(headers, tokens)

    def test_invalid_token(self, tokens):
        with pytest.raises(InvalidTokenError):
            authenticate({"authorization": "Bearer not-a-jwt"}, tokens)

    def test_non_object_id_subject(self, tokens):
        token = tokens.issue(TokenClaims(user_id="12345", email="x@example.com"))
        with pytest.raises(InvalidTokenError):
            authenticate({"authorization": f"Bearer {token}"}, tokens)
