import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError, OperationalError

from cognify.core.config import settings
from cognify.core.errors import AppError, register_error_handlers
from cognify.core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    register_error_handlers(app)

    @app.get("/app-error")
    async def app_error():
        raise AppError("Nope", status_code=418, code="TEAPOT", details={"why": "short and stout"})

    @app.get("/db-down")
    async def db_down():
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    @app.get("/db-error")
    async def db_error():
        raise IntegrityError("INSERT", {}, Exception("constraint failed"))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return app


@pytest.fixture
async def error_client():
    transport = ASGITransport(app=_build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def test_app_error_envelope(error_client):
    response = await error_client.get("/app-error", headers={"X-Request-ID": "req-42"})
    assert response.status_code == 418
    assert response.json() == {
        "error": {
            "code": "TEAPOT",
            "message": "Nope",
            "requestId": "req-42",
            "details": {"why": "short and stout"},
        }
    }
    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


async def test_generated_request_id(error_client):
    response = await error_client.get("/app-error")
    assert response.json()["error"]["requestId"] == response.headers["X-Request-ID"]


async def test_not_found_envelope(error_client):
    response = await error_client.get("/missing")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_database_unavailable(error_client):
    response = await error_client.get("/db-down")
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "DATABASE_UNAVAILABLE"


async def test_database_error(error_client):
    response = await error_client.get("/db-error")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "DATABASE_ERROR"


async def test_unhandled_error_shows_message_outside_production(error_client):
    response = await error_client.get("/boom", headers={"X-Request-ID": "req-500"})
    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "INTERNAL_SERVER_ERROR"
    assert error["message"] == "kaboom"
    assert error["requestId"] == "req-500"


async def test_unhandled_error_hidden_in_production(error_client, monkeypatch):
    monkeypatch.setattr(settings, "DEPLOYMENT_ENV", "production")
    response = await error_client.get("/boom")
    assert response.status_code == 500
    assert response.json()["error"]["message"] == "An internal server error occurred"
