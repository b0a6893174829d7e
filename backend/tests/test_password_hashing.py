from cognify.utils.security import (
    hash_password,
    hash_password_async,
    verify_password,
    verify_password_async,
)


def test_hash_uses_cost_10_and_random_salt():
    first = hash_password("password123")
    second = hash_password("password123")

    assert first.startswith("$2b$10$")
    assert first != second
    assert verify_password("password123", first)
    assert verify_password("password123", second)


def test_verify_rejects_wrong_password():
    digest = hash_password("password123")
    assert verify_password("password124", digest) is False


def test_verify_malformed_digest_returns_false():
    assert verify_password("password123", "not-a-bcrypt-digest") is False
    assert verify_password("password123", "") is False


async def test_async_variants_roundtrip():
    digest = await hash_password_async("s3cret")
    assert await verify_password_async("s3cret", digest) is True
    assert await verify_password_async("other", digest) is False


def test_passwords_longer_than_72_bytes_roundtrip():
    for password in ("a" * 80, "é" * 40):
        digest = hash_password(password)
        assert verify_password(password, digest) is True
        assert verify_password(password[:-1] + "x", digest) is True
        assert verify_password("b" + password[1:], digest) is False


async def test_async_variants_accept_long_passwords():
    digest = await hash_password_async("密" * 30)
    assert await verify_password_async("密" * 30, digest) is True
