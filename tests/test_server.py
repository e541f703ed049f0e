import pytest
from fastapi.testclient import TestClient

from aggregator.models import UnifiedProperty
from server import app as server_app


def _prop(pid: str, price: float, bedrooms: int = 1, images=None) -> UnifiedProperty:
    return UnifiedProperty(
        id=pid,
        source="epctex-slash-realtor-scraper",
        title=f"Listing {pid}",
        price=f"${price:,.0f}",
        price_numeric=price,
        bedrooms=bedrooms,
        images=images or [],
        scraped_at="2024-06-01T12:00:00+00:00",
    )


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setenv("APIFY_TOKEN", "server-token")
    return TestClient(server_app.app)


@pytest.fixture()
def calls(monkeypatch):
    recorded = []

    async def fake_search(tool_name, arguments, credential=None, *, settings=None):
        recorded.append(("search", tool_name, arguments, settings.apify_token))
        return [_prop("a", 2500, bedrooms=1), _prop("b", 1800, bedrooms=2, images=["https://x/b.jpg"])]

    async def fake_search_many(requests, credential=None, *, settings=None):
        recorded.append(("search_many", list(requests), settings.apify_token))
        return [_prop("c", 1200)]

    monkeypatch.setattr(server_app, "search", fake_search)
    monkeypatch.setattr(server_app, "search_many", fake_search_many)
    return recorded


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_tools_catalogue(client):
    body = client.get("/api/tools").json()
    names = [tool["name"] for tool in body["tools"]]
    assert "jupri-slash-zillow-scraper" in names
    assert body["aliases"]["epctex_realtor_scraper"] == "epctex-slash-realtor-scraper"


def test_mcp_search_returns_camel_case_properties(client, calls):
    resp = client.post(
        "/api/properties/mcp-search",
        json={"toolName": "epctex_realtor_scraper", "toolInput": {"search": "Austin"}},
    )

    assert resp.status_code == 200
    properties = resp.json()["properties"]
    assert [p["id"] for p in properties] == ["a", "b"]
    assert properties[0]["priceNumeric"] == 2500
    assert calls == [("search", "epctex_realtor_scraper", {"search": "Austin"}, "server-token")]


def test_mcp_search_ranks_when_criteria_given(client, calls):
    resp = client.post(
        "/api/properties/mcp-search",
        json={"toolName": "x", "toolInput": {}, "maxPrice": 2000, "bedrooms": 2},
    )
    assert [p["id"] for p in resp.json()["properties"]] == ["b", "a"]


@pytest.mark.parametrize("payload", [{"toolInput": {}}, {"toolName": "x"}, {"toolName": "", "toolInput": {}}])
def test_mcp_search_rejects_incomplete_requests(client, calls, payload):
    resp = client.post("/api/properties/mcp-search", json=payload)
    assert resp.status_code == 400
    assert calls == []


def test_mcp_search_accepts_null_tool_input(client, calls):
    resp = client.post("/api/properties/mcp-search", json={"toolName": "x", "toolInput": None})

    assert resp.status_code == 200
    assert calls == [("search", "x", {}, "server-token")]


def test_multi_search_accepts_null_tool_input(client, calls):
    resp = client.post("/api/properties/multi-search", json={"searches": [{"toolName": "a", "toolInput": None}]})

    assert resp.status_code == 200
    assert calls == [("search_many", [("a", {})], "server-token")]


def test_mcp_search_without_token_is_server_error(client, calls, monkeypatch):
    monkeypatch.delenv("APIFY_TOKEN", raising=False)
    monkeypatch.delenv("APIFY_API_TOKEN", raising=False)

    resp = client.post("/api/properties/mcp-search", json={"toolName": "x", "toolInput": {}})
    assert resp.status_code == 500
    assert calls == []


def test_multi_search(client, calls):
    resp = client.post(
        "/api/properties/multi-search",
        json={"searches": [{"toolName": "a", "toolInput": {"q": 1}}, {"toolName": "b", "toolInput": {}}]},
    )

    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()["properties"]] == ["c"]
    assert calls == [("search_many", [("a", {"q": 1}), ("b", {})], "server-token")]


def test_multi_search_requires_searches(client, calls):
    assert client.post("/api/properties/multi-search", json={"searches": []}).status_code == 400
