from datetime import datetime, timedelta, timezone

from jose import jwt

from access_control.auth.jwt_handler import decode_access_token, get_user_id_from_token
from access_control.core.config import settings


def encode(claims: dict, key: str = None) -> str:
    return jwt.encode(claims, key or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def expires_in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


class TestAccessTokens:
    def test_valid_token(self):
        token = encode({"sub": "42", "type": "access", "exp": expires_in(5)})

        assert get_user_id_from_token(token) == 42

    def test_token_without_type_is_accepted(self):
        token = encode({"sub": "7", "exp": expires_in(5)})

        assert get_user_id_from_token(token) == 7

    def test_refresh_token_is_rejected(self):
        token = encode({"sub": "42", "type": "refresh", "exp": expires_in(5)})

        assert decode_access_token(token) is None

    def test_expired_token(self):
        token = encode({"sub": "42", "type": "access", "exp": expires_in(-5)})

        assert get_user_id_from_token(token) is None

    def test_wrong_signature(self):
        token = encode({"sub": "42", "type": "access", "exp": expires_in(5)}, key="another-secret")

        assert get_user_id_from_token(token) is None

    def test_missing_or_malformed_subject(self):
        assert get_user_id_from_token(encode({"type": "access", "exp": expires_in(5)})) is None
        assert get_user_id_from_token(encode({"sub": "admin", "exp": expires_in(5)})) is None

    def test_garbage(self):
        assert get_user_id_from_token("not-a-token") is None
