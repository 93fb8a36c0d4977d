"""Integration tests for webhook ingestion and record endpoints."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from src.extraction.extractor import ContentExtractor
from src.server.app import create_app
from src.tokens.store import TokenStore
from tests.conftest import HTML_PAGE, TEST_TOKEN, RecordingTransport, route_by_url

AUTH = {"X-Webhook-Token": TEST_TOKEN}


def _make_app(transport: RecordingTransport | None = None, **kwargs: Any) -> Any:
    transport = transport or RecordingTransport(lambda r: httpx.Response(200, json={"k": 1}))
    defaults: dict[str, Any] = {
        "tokens": TokenStore(default_token=TEST_TOKEN),
        "extractor": ContentExtractor(transport=transport),
    }
    defaults.update(kwargs)
    return create_app(**defaults)


def _client(app: Any) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestGatedWebhook:
    @pytest.mark.asyncio
    async def test_requires_token(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post("/webhook", json={"a": 1})
        assert resp.status_code == 401
        assert len(app.state.webhooks) == 0

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post("/webhook", json={}, headers={"X-Webhook-Token": "nope"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid webhook token"
        assert len(app.state.webhooks) == 0

    @pytest.mark.asyncio
    async def test_accepts_and_extracts(self) -> None:
        transport = RecordingTransport(route_by_url({
            "https://x.test/1": httpx.Response(200, json={"k": 1}),
            "https://x.test/2": httpx.Response(200, html=HTML_PAGE),
        }))
        app = _make_app(transport)
        body = {"a": "https://x.test/1", "b": "see https://x.test/2 too"}
        async with _client(app) as client:
            resp = await client.post("/webhook", json=body, headers=AUTH)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Webhook received successfully"
        assert data["urlsFound"] == 2
        assert [item["type"] for item in data["extractedData"]] == ["json", "html"]
        assert data["extractedData"][0]["data"] == {"k": 1}
        assert data["extractedData"][1]["title"] == "T"
        assert app.state.webhooks.get(data["webhookId"]) is not None
        assert len(app.state.extracted) == 2

    @pytest.mark.asyncio
    async def test_token_forwarded_to_fetch(self) -> None:
        transport = RecordingTransport(lambda r: httpx.Response(200, text="ok"))
        app = _make_app(transport)
        async with _client(app) as client:
            await client.post("/webhook", json={"u": "https://x.test/"}, headers=AUTH)
        request = transport.requests[0]
        assert request.headers["authorization"] == f"Bearer {TEST_TOKEN}"
        assert request.headers["x-api-key"] == TEST_TOKEN

    @pytest.mark.asyncio
    async def test_no_urls_gives_null_extracted_data(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post("/webhook", json={"event": "ping"}, headers=AUTH)
        data = resp.json()
        assert data["urlsFound"] == 0
        assert data["extractedData"] is None

    @pytest.mark.asyncio
    async def test_failed_fetch_still_succeeds(self) -> None:
        transport = RecordingTransport(route_by_url({
            "https://down.test/": httpx.ConnectError("Connection refused"),
        }))
        app = _make_app(transport)
        async with _client(app) as client:
            resp = await client.post("/webhook", json={"u": "https://down.test/"}, headers=AUTH)
        assert resp.status_code == 200
        data = resp.json()
        assert data["extractedData"][0]["type"] == "error"
        assert data["extractedData"][0]["error"] == "Connection refused"
        assert len(app.state.extracted) == 1

    @pytest.mark.asyncio
    async def test_usage_counter_incremented(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            await client.post("/webhook", json={}, headers=AUTH)
            await client.post("/webhook", json={}, params={"token": TEST_TOKEN})
        assert app.state.tokens.get(TEST_TOKEN).usage_count == 2


class TestPublicWebhook:
    @pytest.mark.asyncio
    async def test_no_token_needed(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post("/webhook-public", json={"a": 1})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Public webhook received successfully"

    @pytest.mark.asyncio
    async def test_never_forwards_credential(self) -> None:
        transport = RecordingTransport(lambda r: httpx.Response(200, text="ok"))
        app = _make_app(transport)
        async with _client(app) as client:
            resp = await client.post(
                "/webhook-public",
                json={"u": "https://x.test/"},
                headers={**AUTH, "Authorization": f"Bearer {TEST_TOKEN}"},
                params={"token": TEST_TOKEN},
            )
        assert resp.status_code == 200
        assert len(transport.requests) == 1
        assert "authorization" not in transport.requests[0].headers
        assert "x-api-key" not in transport.requests[0].headers
        assert app.state.tokens.get(TEST_TOKEN).usage_count == 0

    @pytest.mark.asyncio
    async def test_referer_header_extracted(self) -> None:
        transport = RecordingTransport(lambda r: httpx.Response(200, text="ok"))
        app = _make_app(transport)
        async with _client(app) as client:
            resp = await client.post(
                "/webhook-public", json={}, headers={"Referer": "https://ref.test/page"},
            )
        assert resp.json()["urlsFound"] == 1
        assert str(transport.requests[0].url) == "https://ref.test/page"


class TestRecordShape:
    @pytest.mark.asyncio
    async def test_record_captures_request(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post(
                "/webhook-public?source=ci", json={"a": 1}, headers={"X-Custom": "yes"},
            )
            webhook_id = resp.json()["webhookId"]
            detail = await client.get(f"/webhook/{webhook_id}")

        record = detail.json()["webhook"]
        assert record["id"] == webhook_id
        assert record["method"] == "POST"
        assert record["url"] == "/webhook-public?source=ci"
        assert record["query"] == {"source": "ci"}
        assert record["body"] == {"a": 1}
        assert record["headers"]["x-custom"] == "yes"
        assert record["timestamp"] == resp.json()["timestamp"]

    @pytest.mark.asyncio
    async def test_form_body_parsed(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post("/webhook-public", data={"u": "https://f.test/"})
        assert resp.json()["urlsFound"] == 1
        assert app.state.webhooks.all()[0].body == {"u": "https://f.test/"}

    @pytest.mark.asyncio
    async def test_text_body_not_scanned(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post(
                "/webhook-public",
                content=b"https://t.test/",
                headers={"content-type": "text/plain"},
            )
        assert resp.json()["urlsFound"] == 0
        assert app.state.webhooks.all()[0].body == "https://t.test/"

    @pytest.mark.asyncio
    async def test_empty_body_recorded_as_null(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            await client.post("/webhook-public")
        assert app.state.webhooks.all()[0].body is None

    @pytest.mark.asyncio
    async def test_invalid_json_rejected_without_record(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            resp = await client.post(
                "/webhook-public",
                content=b"{broken",
                headers={"content-type": "application/json"},
            )
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert len(app.state.webhooks) == 0

    @pytest.mark.asyncio
    async def test_ids_unique(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            ids = [
                (await client.post("/webhook-public", json={})).json()["webhookId"]
                for _ in range(5)
            ]
        assert len(set(ids)) == 5


class TestRecordEndpoints:
    @pytest.mark.asyncio
    async def test_health_reports_count(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            await client.post("/webhook-public", json={})
            resp = await client.get("/")
        assert resp.json()["status"] == "healthy"
        assert resp.json()["totalWebhooks"] == 1

    @pytest.mark.asyncio
    async def test_list_and_clear_webhooks(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            await client.post("/webhook-public", json={})
            listed = (await client.get("/webhooks")).json()
            assert listed["count"] == 1
            cleared = await client.delete("/webhooks")
            assert cleared.json()["success"] is True
            after = (await client.get("/webhooks")).json()
        assert after["count"] == 0
        assert after["webhooks"] == []

    @pytest.mark.asyncio
    async def test_unknown_webhook_404(self) -> None:
        async with _client(_make_app()) as client:
            resp = await client.get("/webhook/does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Webhook not found"}

    @pytest.mark.asyncio
    async def test_list_and_clear_extracted(self) -> None:
        app = _make_app()
        async with _client(app) as client:
            await client.post("/webhook-public", json={"u": "https://x.test/"})
            listed = (await client.get("/extracted")).json()
            assert listed["count"] == 1
            assert listed["extractedData"][0]["url"] == "https://x.test/"
            await client.delete("/extracted")
            after = (await client.get("/extracted")).json()
        assert after["count"] == 0
