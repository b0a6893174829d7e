import re
from datetime import timedelta

import pytest

from cognify.core.config import settings
from cognify.utils.tokens import TokenCodec

API = settings.API_V1_STR
codec = TokenCodec()


def _refresh_cookie_header(response) -> str:
    for header in response.headers.get_list("set-cookie"):
        if header.startswith("refreshToken="):
            return header
    raise AssertionError("refreshToken cookie not set")


def _refresh_cookie_value(response) -> str:
    return re.match(r"refreshToken=([^;]*)", _refresh_cookie_header(response)).group(1)


async def _post_with_cookie(client, path, token):
    client.cookies.clear()
    return await client.post(f"{API}{path}", headers={"Cookie": f"refreshToken={token}"})


async def _login(client, handle="alice", password="password123"):
    return await client.post(f"{API}/auth/login", json={"handle": handle, "password": password})


async def test_signup_then_login(client):
    signup = await client.post(
        f"{API}/auth/signup",
        json={"name": "Alice", "username": "alice", "email": "alice@test.com", "password": "password123"},
    )
    assert signup.status_code == 200
    claims = codec.verify(signup.json()["token"], settings.JWT_SECRET)
    assert claims.roles == ["STUDENT"]
    assert signup.headers["X-RateLimit-Limit"] == "5"
    assert signup.headers["X-Request-ID"]

    login = await _login(client)
    assert login.status_code == 200
    assert codec.verify(login.json()["token"], settings.JWT_SECRET).roles == ["STUDENT"]

    cookie = _refresh_cookie_header(login).lower()
    assert "httponly" in cookie
    assert "path=/" in cookie
    assert "samesite=strict" in cookie
    assert "max-age=604800" in cookie
    assert "secure" not in cookie


@pytest.mark.parametrize("password", ["a" * 80, "é" * 40])
async def test_signup_and_login_with_long_password(client, password):
    signup = await client.post(
        f"{API}/auth/signup",
        json={"name": "Long", "username": "long", "email": "long@test.com", "password": password},
    )
    assert signup.status_code == 200

    login = await _login(client, handle="long", password=password)
    assert login.status_code == 200
    assert codec.verify(login.json()["token"], settings.JWT_SECRET).username == "long"


async def test_signup_conflict(client, make_user):
    await make_user("alice")
    response = await client.post(
        f"{API}/auth/signup",
        json={"name": "Alice", "username": "alice", "email": "new@test.com", "password": "password123"},
    )
    assert response.status_code == 409
    assert response.json() == {"error": "Username already taken"}


async def test_signup_invalid_body(client):
    response = await client.post(f"{API}/auth/signup", json={"username": "alice"}, headers={"X-Request-ID": "req-1"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["requestId"] == "req-1"
    assert error["details"]


async def test_login_invalid_credentials(client, make_user):
    await make_user("alice")
    response = await _login(client, password="wrong")
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


async def test_secure_cookie_in_production(client, make_user, monkeypatch):
    await make_user("alice")
    monkeypatch.setattr(settings, "DEPLOYMENT_ENV", "production")
    response = await _login(client)
    assert "secure" in _refresh_cookie_header(response).lower()


async def test_refresh_rotates_cookie(client, make_user):
    await make_user("alice")
    old_token = _refresh_cookie_value(await _login(client))

    response = await _post_with_cookie(client, "/auth/refresh", old_token)
    assert response.status_code == 200
    assert codec.verify(response.json()["token"], settings.JWT_SECRET).username == "alice"
    new_token = _refresh_cookie_value(response)
    assert new_token and new_token != old_token

    replay = await _post_with_cookie(client, "/auth/refresh", old_token)
    assert replay.status_code == 401
    assert replay.json() == {"error": "Unauthorized"}


async def test_refresh_without_cookie(client):
    client.cookies.clear()
    response = await client.post(f"{API}/auth/refresh")
    assert response.status_code == 401
    assert response.json() == {"error": "No refresh token found"}


async def test_refresh_with_expired_token(client, make_user):
    user_id = await make_user("alice")
    expired = codec.sign(
        {"id": user_id, "username": "alice", "roles": ["STUDENT"]},
        settings.JWT_REFRESH_SECRET,
        timedelta(seconds=-30),
    )
    response = await _post_with_cookie(client, "/auth/refresh", expired)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_verify_with_wrong_secret(client):
    forged = codec.sign({"id": "u-1", "username": "mallory", "roles": ["ADMIN"]}, "not-the-secret", "1h")
    response = await client.get(f"{API}/auth/verify", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401
    assert "error" in response.json()


async def test_verify_valid_token(client, make_user):
    await make_user("alice", roles=("ADMIN",))
    token = (await _login(client)).json()["token"]

    response = await client.get(f"{API}/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["username"] == "alice"
    assert user["roles"] == ["ADMIN"]


async def test_verify_without_header(client):
    response = await client.get(f"{API}/auth/verify")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_logout(client, make_user):
    await make_user("alice")
    token = _refresh_cookie_value(await _login(client))

    response = await _post_with_cookie(client, "/auth/logout", token)
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out"}
    cleared = _refresh_cookie_header(response).lower()
    assert cleared.startswith('refreshtoken="";') or cleared.startswith("refreshtoken=;")
    assert "max-age=0" in cleared

    after = await _post_with_cookie(client, "/auth/refresh", token)
    assert after.status_code == 401


async def test_logout_without_cookie(client):
    client.cookies.clear()
    response = await client.post(f"{API}/auth/logout")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


async def test_forgot_password(client, make_user):
    await make_user("alice")

    found = await client.post(f"{API}/auth/forgot-password", json={"email": "alice@test.com"})
    assert found.status_code == 200
    assert found.json() == {"message": "Email sent"}

    missing = await client.post(f"{API}/auth/forgot-password", json={"email": "nobody@test.com"})
    assert missing.status_code == 404
    assert missing.json() == {"error": "User not found"}


async def test_login_rate_limited_after_five_attempts(client, make_user):
    await make_user("alice")
    for attempt in range(5):
        response = await _login(client, password="wrong")
        assert response.status_code == 401
        assert response.headers["X-RateLimit-Remaining"] == str(4 - attempt)

    blocked = await _login(client)
    assert blocked.status_code == 429
    assert blocked.headers["X-RateLimit-Limit"] == "5"
    assert blocked.headers["X-RateLimit-Remaining"] == "0"
    assert int(blocked.headers["Retry-After"]) > 0
    assert blocked.headers["X-RateLimit-Reset"].endswith("Z")
    assert blocked.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
