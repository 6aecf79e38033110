import time

import jwt
import pytest

from carmarket.auth import auth_handler
from carmarket.auth.auth_handler import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    decode_jwt,
    refresh_access_token,
    sign_access_token,
    sign_jwt,
    sign_refresh_token,
    validate_token,
)
from carmarket.core.config import JWT_ALGORITHM, JWT_SECRET
from carmarket.main import app, lifespan
from carmarket.services.exceptions import AuthenticationError

USER_ID = "3f1c2a84-8f5e-4f6b-9a53-0c1d2e3f4a5b"
EMAIL = "dealer@example.com"


class TestTokenSigning:
    """Claims carried by access and refresh tokens."""

    def test_access_token_claims(self):
        payload = decode_jwt(sign_access_token(USER_ID, EMAIL, "DEALER"))

        assert payload["sub"] == EMAIL
        assert payload["user_id"] == USER_ID
        assert payload["role"] == "DEALER"
        assert payload["type"] == ACCESS_TOKEN_TYPE
        assert payload["exp"] > payload["iat"]

    def test_refresh_token_outlives_access_token(self):
        tokens = sign_jwt(USER_ID, EMAIL, "BUYER")
        access = decode_jwt(tokens["access_token"])
        refresh = decode_jwt(tokens["refresh_token"])

        assert refresh["type"] == REFRESH_TOKEN_TYPE
        assert refresh["exp"] - refresh["iat"] > access["exp"] - access["iat"]


class TestTokenValidation:

    def test_tampered_token_is_rejected(self):
        token = sign_access_token(USER_ID, EMAIL, "BUYER")
        assert decode_jwt(token[:-2] + "xx") is None

    def test_expired_token_is_rejected(self):
        now = int(time.time())
        token = jwt.encode(
            {"sub": EMAIL, "type": ACCESS_TOKEN_TYPE, "iat": now - 120, "exp": now - 60},
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        assert decode_jwt(token) is None

    def test_token_signed_with_other_secret_is_rejected(self):
        token = jwt.encode({"sub": EMAIL, "exp": int(time.time()) + 60}, "another-secret", algorithm="HS256")
        assert decode_jwt(token) is None

    def test_validate_token_checks_subject_and_type(self):
        access = sign_access_token(USER_ID, EMAIL, "BUYER")
        refresh = sign_refresh_token(USER_ID, EMAIL, "BUYER")

        assert validate_token(access, EMAIL)
        assert not validate_token(access, "someone@example.com")
        assert not validate_token(refresh, EMAIL)
        assert validate_token(refresh, EMAIL, token_type=REFRESH_TOKEN_TYPE)


class TestRefresh:

    def test_refresh_mints_access_token(self):
        new_token = refresh_access_token(sign_refresh_token(USER_ID, EMAIL, "BUYER"))
        payload = decode_jwt(new_token)

        assert payload["type"] == ACCESS_TOKEN_TYPE
        assert payload["sub"] == EMAIL
        assert payload["user_id"] == USER_ID

    def test_access_token_cannot_be_used_to_refresh(self):
        with pytest.raises(AuthenticationError):
            refresh_access_token(sign_access_token(USER_ID, EMAIL, "BUYER"))

    def test_garbage_refresh_token(self):
        with pytest.raises(AuthenticationError):
            refresh_access_token("not-a-jwt")


class TestSigningSecret:
    """The app will not start without JWT_SECRET."""

    def test_configured_secret_is_accepted(self):
        auth_handler.ensure_jwt_secret()

    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret_is_rejected(self, monkeypatch, secret):
        monkeypatch.setattr(auth_handler, "JWT_SECRET", secret)

        with pytest.raises(RuntimeError, match="JWT_SECRET"):
            auth_handler.ensure_jwt_secret()

    async def test_startup_fails_without_secret(self, monkeypatch):
        monkeypatch.setattr(auth_handler, "JWT_SECRET", None)

        with pytest.raises(RuntimeError, match="JWT_SECRET"):
            async with lifespan(app):
                pass
