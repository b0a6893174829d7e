from datetime import timedelta

import pytest
from jose import jwt

from cognify.utils.tokens import (
    InvalidToken,
    TokenClaims,
    TokenCodec,
    TokenExpired,
    parse_duration,
)

ACCESS = "access-secret"
REFRESH = "refresh-secret"
IDENTITY = {"id": "u-1", "username": "alice", "roles": ["STUDENT"]}

codec = TokenCodec()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1h", timedelta(hours=1)),
        ("7d", timedelta(days=7)),
        ("15m", timedelta(minutes=15)),
        ("30s", timedelta(seconds=30)),
        ("500ms", timedelta(milliseconds=500)),
        ("2w", timedelta(weeks=2)),
        ("90", timedelta(seconds=90)),
        (120, timedelta(seconds=120)),
        (timedelta(minutes=5), timedelta(minutes=5)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_parse_duration_rejects_garbage():
    with pytest.raises(ValueError):
        parse_duration("soon")


def test_sign_and_verify_returns_claims():
    token = codec.sign(IDENTITY, ACCESS, "1h")
    claims = codec.verify(token, ACCESS)

    assert isinstance(claims, TokenClaims)
    assert claims.identity() == IDENTITY
    assert claims.exp - claims.iat == 3600
    assert claims.jti


def test_tokens_for_same_identity_differ():
    assert codec.sign(IDENTITY, ACCESS, "1h") != codec.sign(IDENTITY, ACCESS, "1h")


def test_wrong_secret_is_invalid():
    token = codec.sign(IDENTITY, ACCESS, "1h")
    with pytest.raises(InvalidToken):
        codec.verify(token, REFRESH)


def test_refresh_token_fails_against_access_secret():
    token = codec.sign(IDENTITY, REFRESH, "7d")
    with pytest.raises(InvalidToken):
        codec.verify(token, ACCESS)


def test_expired_token():
    token = codec.sign(IDENTITY, ACCESS, timedelta(seconds=-10))
    with pytest.raises(TokenExpired):
        codec.verify(token, ACCESS)


def test_malformed_token():
    with pytest.raises(InvalidToken):
        codec.verify("not.a.jwt", ACCESS)


def test_payload_without_required_claims_is_invalid():
    token = jwt.encode({"username": "alice"}, ACCESS, algorithm="HS256")
    with pytest.raises(InvalidToken):
        codec.verify(token, ACCESS)


def test_sign_accepts_claims_model():
    original = codec.verify(codec.sign(IDENTITY, ACCESS, "1h"), ACCESS)
    reissued = codec.verify(codec.sign(original, ACCESS, "1h"), ACCESS)
    assert reissued.identity() == IDENTITY
    assert reissued.jti != original.jti
