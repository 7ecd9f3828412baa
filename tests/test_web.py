from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from seogen.charset import DecodedPage
from seogen.store import InMemoryPageStore
from seogen.web import create_app, sanitize_host

PAGE_HTML = (
    "<html><head><title>Notice</title></head><body><h1>Service notice for members</h1>"
    "<p>The service will be unavailable on Sunday morning for scheduled maintenance.</p></body></html>"
)


@pytest.fixture
def store():
    return InMemoryPageStore(
        pages=[
            {"id": "1", "version_id": "v1", "path": "/notice/1"},
            {"id": "2", "version_id": "v1", "path": "/notice/2"},
        ],
        versions=[{"id": "v1"}],
    )


@pytest.fixture
def client(store, settings):
    app = create_app(store=store, settings=settings)
    app.config["TESTING"] = True
    return app.test_client()


def parse_stream(body: str):
    return [json.loads(chunk[len("data: "):]) for chunk in body.split("\n\n") if chunk.startswith("data: ")]


def test_generate_streams_events(client, store):
    page = DecodedPage(text=PAGE_HTML, charset_used="utf-8")
    with patch("seogen.fetcher.fetch_page", return_value=page) as fetch:
        resp = client.post(
            "/api/ai-generate-seo",
            json={
                "versionId": "v1",
                "host": "https://example.com/",
                "pageIds": [],
                "fields": {"title": True, "description": True},
                "model": "heuristic",
            },
        )
        body = resp.get_data(as_text=True)

    assert resp.mimetype == "text/event-stream"
    events = parse_stream(body)
    assert [e["type"] for e in events] == ["init", "progress", "progress", "complete"]
    assert events[-1]["successCount"] == 2
    assert fetch.call_args_list[0].args[0] == "https://example.com/notice/1"
    assert store.pages[0]["title"] == "Service notice for members"


def test_generate_validation_error_is_streamed(client):
    resp = client.post("/api/ai-generate-seo", json={"versionId": "v1", "host": "example.com", "fields": {}})
    events = parse_stream(resp.get_data(as_text=True))

    assert len(events) == 1
    assert events[0]["type"] == "error"


@pytest.mark.parametrize("fields", [["title"], "title", 7, None])
def test_generate_malformed_fields_is_streamed_error(client, fields):
    resp = client.post("/api/ai-generate-seo", json={"versionId": "v1", "host": "x.com", "fields": fields})
    events = parse_stream(resp.get_data(as_text=True))

    assert resp.status_code == 200
    assert events == [{"type": "error", "error": "Select at least one field to generate"}]


def test_generate_ignores_malformed_page_ids(client, store):
    page = DecodedPage(text=PAGE_HTML, charset_used="utf-8")
    with patch("seogen.fetcher.fetch_page", return_value=page):
        resp = client.post(
            "/api/ai-generate-seo",
            json={"versionId": "v1", "host": "example.com", "pageIds": 5, "fields": {"title": True}},
        )
        events = parse_stream(resp.get_data(as_text=True))

    assert events[-1]["type"] == "complete"
    assert events[-1]["successCount"] == 2


def test_test_api_key_rejects_non_object_body(client):
    resp = client.post("/api/test-api-key", json=["claude", "ak"])

    assert resp.get_json()["success"] is False


def test_check_api_keys(store, settings_factory):
    app = create_app(store=store, settings=settings_factory(anthropic_api_key="ak-env"))
    resp = app.test_client().get("/api/check-api-keys")

    assert resp.get_json() == {"openai": False, "claude": True}


def test_test_api_key_reports_failure(client):
    reply = MagicMock(status_code=401, ok=False)
    reply.json.return_value = {"error": {"message": "invalid x-api-key"}}
    with patch("seogen.providers.requests.post", return_value=reply):
        resp = client.post("/api/test-api-key", json={"provider": "claude", "apiKey": "ak-bad"})

    data = resp.get_json()
    assert data["success"] is False
    assert "not valid" in data["error"]


def test_extract_endpoint(client):
    page = DecodedPage(text=PAGE_HTML, charset_used="euc-kr")
    with patch("seogen.web.fetch_page", return_value=page):
        resp = client.get("/api/extract?url=example.com/notice/1")

    data = resp.get_json()
    assert data["url"] == "https://example.com/notice/1"
    assert data["charset"] == "euc-kr"
    assert data["h1"] == "Service notice for members"
    assert data["selectors"] == ["h1"]


def test_extract_requires_url(client):
    assert client.get("/api/extract").status_code == 400


def test_sanitize_host():
    assert sanitize_host(" https://Example.com/board/ ") == "Example.com"
    assert sanitize_host("example.com") == "example.com"
    assert sanitize_host(None) == ""
