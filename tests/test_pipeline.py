import asyncio
import csv
import json
from pathlib import Path

import pytest

from aggregator import pipeline
from aggregator.config import PipelineSettings
from aggregator.errors import ConfigurationError, InvokeTimeoutError, RunFailedError
from aggregator.models import JobHandle

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _load_fixture(name: str):
    with open(FIXTURES / name, "r", encoding="utf-8") as f:
        return json.load(f)


SETTINGS = PipelineSettings(apify_token="test-token", mcp_server_url="https://mcp.test", search_timeout=5)


class FakeBackend:
    """Stands in for the invoker, poller and fetcher; records how it was called."""

    def __init__(self, datasets, handles=None, failures=None):
        self.datasets = datasets
        self.handles = handles or {}
        self.failures = failures or {}
        self.invoked = []
        self.polled = []
        self.fetched = []

    async def invoke_tool(self, tool_name, arguments, credential, *, base_url, timeout):
        self.invoked.append((tool_name, arguments, credential))
        if tool_name in self.failures:
            raise self.failures[tool_name]
        return self.handles.get(tool_name, JobHandle(run_id=f"run-{tool_name}", dataset_id="stale"))

    async def poll_until_done(self, run_id, credential, *, poll_interval, max_duration, status_retries):
        self.polled.append(run_id)
        if run_id in self.failures:
            raise self.failures[run_id]
        return f"ds-{run_id}"

    async def fetch_records(self, dataset_id, credential, *, limit):
        self.fetched.append((dataset_id, limit))
        return self.datasets.get(dataset_id, [])

    def install(self, monkeypatch):
        monkeypatch.setattr(pipeline, "invoke_tool", self.invoke_tool)
        monkeypatch.setattr(pipeline, "poll_until_done", self.poll_until_done)
        monkeypatch.setattr(pipeline, "fetch_records", self.fetch_records)
        return self


ZILLOW = "jupri-slash-zillow-scraper"
REALTOR = "epctex-slash-realtor-scraper"


def test_search_runs_all_stages(monkeypatch, isolated_metrics):
    backend = FakeBackend({f"ds-run-{ZILLOW}": _load_fixture("zillow_items.json")}).install(monkeypatch)

    props = asyncio.run(pipeline.search("jupri_zillow_scraper", {"prompt": "austin", "search_type": "rent"}, settings=SETTINGS))

    assert [p.id for p in props] == ["111", "444"]
    assert all(p.source == ZILLOW for p in props)
    assert backend.invoked == [(ZILLOW, {"prompt": "austin", "search_type": "rent"}, "test-token")]
    # the polled dataset id replaces the one from the invocation
    assert backend.fetched == [(f"ds-run-{ZILLOW}", 100)]

    with open(isolated_metrics, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[-1]["component"] == "search"
    assert rows[-1]["tool"] == ZILLOW
    assert rows[-1]["records"] == "2"
    assert rows[-1]["outcome"] == "ok"


def test_search_without_run_id_skips_polling(monkeypatch):
    backend = FakeBackend(
        {"ds-direct": _load_fixture("realtor_items.json")},
        handles={REALTOR: JobHandle(dataset_id="ds-direct")},
    ).install(monkeypatch)

    props = asyncio.run(pipeline.search("epctex_realtor_scraper", {}, settings=SETTINGS))

    assert [p.id for p in props] == ["r1", "r4"]
    assert backend.polled == []
    assert backend.fetched == [("ds-direct", 100)]


def test_search_returns_empty_on_failed_run(monkeypatch, isolated_metrics):
    FakeBackend({}, failures={f"run-{ZILLOW}": RunFailedError(f"run-{ZILLOW}", "FAILED")}).install(monkeypatch)

    assert asyncio.run(pipeline.search(ZILLOW, {}, settings=SETTINGS)) == []
    with open(isolated_metrics, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[-1]["outcome"] == "RunFailedError"


def test_search_returns_empty_on_invoke_timeout(monkeypatch):
    backend = FakeBackend({}, failures={ZILLOW: InvokeTimeoutError("slow")}).install(monkeypatch)

    assert asyncio.run(pipeline.search(ZILLOW, {}, settings=SETTINGS)) == []
    assert backend.fetched == []


def test_search_returns_empty_on_unexpected_error(monkeypatch):
    backend = FakeBackend({}).install(monkeypatch)

    async def broken_fetch(dataset_id, credential, *, limit):
        raise ValueError("bad payload")

    monkeypatch.setattr(pipeline, "fetch_records", broken_fetch)
    assert asyncio.run(pipeline.search(ZILLOW, {}, settings=SETTINGS)) == []
    assert backend.invoked


def test_search_is_bounded_by_search_timeout(monkeypatch):
    backend = FakeBackend({}).install(monkeypatch)

    async def hanging_invoke(tool_name, arguments, credential, *, base_url, timeout):
        await asyncio.sleep(60)

    monkeypatch.setattr(pipeline, "invoke_tool", hanging_invoke)
    settings = PipelineSettings(apify_token="test-token", search_timeout=0.05)

    assert asyncio.run(pipeline.search(ZILLOW, {}, settings=settings)) == []
    assert backend.fetched == []


def test_search_requires_credential_before_io(monkeypatch):
    backend = FakeBackend({}).install(monkeypatch)

    with pytest.raises(ConfigurationError):
        asyncio.run(pipeline.search(ZILLOW, {}, settings=PipelineSettings()))
    assert backend.invoked == []


def test_explicit_credential_overrides_settings(monkeypatch):
    backend = FakeBackend({}).install(monkeypatch)

    asyncio.run(pipeline.search(ZILLOW, {}, "caller-token", settings=PipelineSettings()))
    assert backend.invoked[0][2] == "caller-token"


def test_search_many_keeps_request_order_and_dedupes(monkeypatch):
    shared = {"title": "Same Place", "address": "5 Shared St", "location": "Austin, TX", "price": 1500}
    backend = FakeBackend(
        {
            "ds-run-first-scraper": [dict(shared, id="a1"), {"title": "Only First", "price": 900, "id": "a2"}],
            "ds-run-second-scraper": [dict(shared, id="b1"), {"title": "Only Second", "price": 1100, "id": "b2"}],
        },
        failures={"broken-scraper": InvokeTimeoutError("slow")},
    ).install(monkeypatch)

    props = asyncio.run(
        pipeline.search_many(
            [("first-scraper", {}), ("broken-scraper", {}), ("second-scraper", {})],
            settings=SETTINGS,
        )
    )

    assert [p.id for p in props] == ["a1", "a2", "b2"]
    assert [call[0] for call in backend.invoked] == ["first-scraper", "broken-scraper", "second-scraper"]


def test_search_many_empty_batch():
    assert asyncio.run(pipeline.search_many([], settings=SETTINGS)) == []


def test_search_sync(monkeypatch):
    FakeBackend({f"ds-run-{REALTOR}": _load_fixture("realtor_items.json")}).install(monkeypatch)
    props = pipeline.search_sync(REALTOR, {"search": "Austin"}, settings=SETTINGS)
    assert len(props) == 2
