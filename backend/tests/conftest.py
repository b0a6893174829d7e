import os

os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEPLOYMENT_ENV"] = "development"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterable

import pytest
from httpx import ASGITransport, AsyncClient

from cognify.db.database import Base, build_engine, build_session_factory, get_db
from cognify.models import User, UserRole
from cognify.utils.security import hash_password

DEFAULT_PASSWORD = "password123"


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory):
    from main import create_app

    application = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def create_user(
    session_factory,
    username: str,
    roles: Iterable[str] = ("STUDENT",),
    password: str = DEFAULT_PASSWORD,
    email: str = None,
) -> str:
    """直接写库创建用户，返回用户 ID"""
    async with session_factory() as session:
        user = User(
            username=username,
            email=email or f"{username}@test.com",
            name=username.title(),
            password=hash_password(password),
            roles=[UserRole(role=r) for r in roles],
        )
        session.add(user)
        await session.commit()
        return user.id


@pytest.fixture
def make_user(session_factory):
    async def _make(username: str, roles: Iterable[str] = ("STUDENT",), **kwargs) -> str:
        return await create_user(session_factory, username, roles, **kwargs)

    return _make
