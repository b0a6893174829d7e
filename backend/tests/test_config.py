from datetime import timedelta

import pytest
from pydantic import ValidationError

from cognify.core.config import Settings

BASE = {
    "JWT_SECRET": "access",
    "JWT_REFRESH_SECRET": "refresh",
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
}

ENV_KEYS = (
    "JWT_SECRET", "JWT_REFRESH_SECRET", "JWT_EXPIRATION", "ACCESS_TOKEN_EXPIRY",
    "JWT_REFRESH_EXPIRATION", "REFRESH_TOKEN_EXPIRY", "DEPLOYMENT_ENV", "NODE_ENV", "DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _settings(**overrides):
    values = {**BASE, **overrides}
    values = {k: v for k, v in values.items() if v is not None}
    return Settings(_env_file=None, **values)


def test_defaults():
    s = _settings()
    assert s.access_token_ttl == timedelta(hours=1)
    assert s.refresh_token_ttl == timedelta(days=7)
    assert s.REFRESH_TOKEN_COOKIE_NAME == "refreshToken"
    assert s.is_production is False


@pytest.mark.parametrize("missing", ["JWT_SECRET", "JWT_REFRESH_SECRET"])
def test_missing_secret_fails(missing):
    with pytest.raises(ValidationError):
        _settings(**{missing: None})


def test_blank_secret_fails():
    with pytest.raises(ValidationError):
        _settings(JWT_SECRET="  ")


def test_identical_secrets_fail():
    with pytest.raises(ValidationError):
        _settings(JWT_SECRET="same", JWT_REFRESH_SECRET="same")


def test_expiration_aliases(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRY", "15m")
    monkeypatch.setenv("REFRESH_TOKEN_EXPIRY", "30d")
    s = Settings(_env_file=None, **BASE)
    assert s.access_token_ttl == timedelta(minutes=15)
    assert s.refresh_token_ttl == timedelta(days=30)


def test_invalid_expiration_fails():
    with pytest.raises(ValidationError):
        _settings(JWT_EXPIRATION="forever")
    with pytest.raises(ValidationError):
        _settings(JWT_EXPIRATION="0s")


def test_production_disables_debug(monkeypatch):
    monkeypatch.setenv("NODE_ENV", "production")
    s = Settings(_env_file=None, DEBUG=True, **BASE)
    assert s.is_production is True
    assert s.DEBUG is False
