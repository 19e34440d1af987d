"""
Request middleware tests: diagnostic headers and the per-request summary
line, including requests whose handler raises.
"""
import logging

import pytest
from httpx import AsyncClient

from conduit.middleware import RequestContextMiddleware


async def _receive():
    return {"type": "http.request", "body": b"", "more_body": False}


def _scope(path: str) -> dict:
    return {"type": "http", "method": "GET", "path": path, "headers": []}


@pytest.mark.asyncio
async def test_summary_line_for_normal_request(async_client: AsyncClient, caplog):
    with caplog.at_level(logging.INFO, logger="conduit.middleware"):
        resp = await async_client.get("/health", headers={"X-Request-Id": "req-1"})
    assert resp.headers["x-request-id"] == "req-1"
    assert "GET /health -> 200" in caplog.text
    assert "request_id=req-1" in caplog.text


@pytest.mark.asyncio
async def test_summary_line_when_handler_raises(caplog):
    async def failing_app(scope, receive, send):
        raise RuntimeError("boom")

    async def send(message):
        pass

    middleware = RequestContextMiddleware(failing_app)
    with caplog.at_level(logging.INFO, logger="conduit.middleware"):
        with pytest.raises(RuntimeError):
            await middleware(_scope("/boom"), _receive, send)

    assert "GET /boom -> 500" in caplog.text


@pytest.mark.asyncio
async def test_no_second_summary_when_raising_after_response_started(caplog):
    async def app(scope, receive, send):
        await send({"type": "http.response.start", "status": 200, "headers": []})
        raise RuntimeError("stream broke")

    async def send(message):
        pass

    middleware = RequestContextMiddleware(app)
    with caplog.at_level(logging.INFO, logger="conduit.middleware"):
        with pytest.raises(RuntimeError):
            await middleware(_scope("/stream"), _receive, send)

    lines = [r.getMessage() for r in caplog.records if r.name == "conduit.middleware"]
    assert len(lines) == 1
    assert "GET /stream -> 200" in lines[0]
