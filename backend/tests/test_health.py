"""Pruebas del host: `/api/health`, ruta raíz y servido del panel."""

import logging
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.main import PLACEHOLDER_MESSAGE, create_app


async def test_health_returns_ok(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "OK"
    assert datetime.fromisoformat(payload["timestamp"].replace("Z", "+00:00"))
    assert response.headers["x-request-id"]


async def test_root_returns_placeholder_outside_production(async_client: AsyncClient) -> None:
    response = await async_client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": PLACEHOLDER_MESSAGE}


async def test_unknown_route_is_not_found_outside_production(async_client: AsyncClient) -> None:
    response = await async_client.get("/dashboard")
    assert response.status_code == 404


async def test_production_serves_spa_build(tmp_path) -> None:
    (tmp_path / "index.html").write_text("<div id='root'></div>", encoding="utf-8")
    (tmp_path / "static").mkdir()
    (tmp_path / "static" / "main.js").write_text("console.log('ok')", encoding="utf-8")
    (tmp_path / "favicon.ico").write_bytes(b"ico")
    config = Settings(environment="production", client_build_dir=str(tmp_path))
    app = create_app(config)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        index = await client.get("/dashboard")
        asset = await client.get("/static/main.js")
        favicon = await client.get("/favicon.ico")
        health = await client.get("/api/health")
        escape = await client.get("/..%2F..%2Fetc%2Fpasswd")

    assert index.status_code == 200
    assert "root" in index.text
    assert asset.text == "console.log('ok')"
    assert favicon.content == b"ico"
    assert health.json()["status"] == "OK"
    assert "root" in escape.text


async def test_production_without_build_keeps_placeholder(tmp_path) -> None:
    config = Settings(environment="production", client_build_dir=str(tmp_path / "missing"))
    app = create_app(config)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/")

    assert response.json() == {"message": PLACEHOLDER_MESSAGE}


async def test_request_log_skips_configured_prefixes(
    async_client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr("app.core.middleware.settings.request_log_skip_prefixes", ("/api/health",))
    monkeypatch.setattr("app.core.middleware.settings.request_log_level", "info")
    caplog.set_level(logging.INFO, logger="app.request")

    skipped = await async_client.get("/api/health")
    logged = await async_client.get("/")

    paths = [
        record.path for record in caplog.records if record.getMessage() == "request.completed"
    ]
    assert skipped.headers["x-request-id"]
    assert logged.headers["x-request-id"]
    assert paths == ["/"]
