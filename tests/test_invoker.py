import asyncio
import json

import httpx
import pytest

from aggregator import invoker
from aggregator.errors import ConfigurationError, InvokeTimeoutError, ParseError, ProtocolError, TransportError
from aggregator.models import JobInvocation

BASE_URL = "https://mcp.test"
TOKEN = "apify_api_testtoken"


def _event(name: str, data: str) -> bytes:
    return f"event: {name}\ndata: {data}\n\n".encode("utf-8")


class EventStream(httpx.AsyncByteStream):
    """Server side of an SSE stream fed through a queue; ``None`` ends it."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def __aiter__(self):
        while True:
            chunk = await self.queue.get()
            if chunk is None:
                return
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class FakeMcpServer:
    """Answers POST /message by pushing events onto the open stream."""

    def __init__(self, respond):
        self.stream = EventStream()
        self.respond = respond
        self.posts = []
        self.sse_params = None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/sse":
            self.sse_params = dict(request.url.params)
            await self.stream.queue.put(_event("endpoint", "/message?sessionId=abc123&foo=bar"))
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=self.stream)
        if request.method == "POST" and request.url.path == "/message":
            body = json.loads(request.content)
            self.posts.append({"params": dict(request.url.params), "body": body})
            for chunk in self.respond(body):
                await self.stream.queue.put(chunk)
            return httpx.Response(202, text="Accepted")
        return httpx.Response(404)


def _run_info_result(call_id: str, run_info: dict) -> bytes:
    message = {
        "jsonrpc": "2.0",
        "id": call_id,
        "result": {"content": [{"type": "text", "text": invoker.RUN_INFO_PREFIX + json.dumps(run_info)}]},
    }
    return _event("message", json.dumps(message))


def _invoke(server: FakeMcpServer, timeout: float = 5.0):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(server.handler)) as client:
            return await invoker.invoke_tool(
                "epctex-slash-realtor-scraper",
                {"search": "Austin, TX"},
                TOKEN,
                base_url=BASE_URL,
                timeout=timeout,
                client=client,
            )

    return asyncio.run(_go())


def test_parse_session_id():
    assert invoker.parse_session_id("/message?sessionId=abc123") == "abc123"
    assert invoker.parse_session_id("/message?sessionId=abc123&x=1") == "abc123"
    with pytest.raises(ProtocolError):
        invoker.parse_session_id("/message?foo=bar")
    with pytest.raises(ProtocolError):
        invoker.parse_session_id(None)


def test_call_envelope_shape():
    envelope = invoker.build_call_envelope(JobInvocation("tool-x", {"limit": 5}), "chatprop-1-abcde")
    assert envelope == {
        "jsonrpc": "2.0",
        "id": "chatprop-1-abcde",
        "method": "tools/call",
        "params": {"name": "tool-x", "arguments": {"limit": 5}},
    }


def test_correlation_ids_are_unique():
    first, second = invoker.new_correlation_id(), invoker.new_correlation_id()
    assert first.startswith("chatprop-")
    assert first != second


def test_parse_run_info_text():
    text = invoker.RUN_INFO_PREFIX + '{"id": "run-1", "defaultDatasetId": "ds-1"}'
    assert invoker.parse_run_info_text(text) == {"id": "run-1", "defaultDatasetId": "ds-1"}
    assert invoker.parse_run_info_text('{"id": "run-2"}') == {"id": "run-2"}
    with pytest.raises(ParseError):
        invoker.parse_run_info_text(invoker.RUN_INFO_PREFIX + "no json here")
    with pytest.raises(ParseError):
        invoker.parse_run_info_text("[1, 2]")


def test_extract_job_handle_direct_ids_win():
    result = {
        "runId": "direct-run",
        "content": [{"type": "text", "text": '{"id": "nested-run", "defaultDatasetId": "nested-ds"}'}],
    }
    handle = invoker.extract_job_handle(result)
    assert handle.run_id == "direct-run"
    assert handle.dataset_id == "nested-ds"


def test_extract_job_handle_tolerates_bad_nested_text():
    handle = invoker.extract_job_handle({"content": [{"type": "text", "text": "Actor is running..."}]})
    assert not handle.is_usable
    assert invoker.extract_job_handle({"datasetId": "ds-9"}).dataset_id == "ds-9"


def test_invoke_tool_returns_handle_from_matching_message():
    def respond(body):
        yield _event("message", "ping")
        yield _event("message", json.dumps({"jsonrpc": "2.0", "id": "someone-else", "result": {"runId": "wrong"}}))
        yield _run_info_result(body["id"], {"id": "run-1", "defaultDatasetId": "ds-1"})

    server = FakeMcpServer(respond)
    handle = _invoke(server)

    assert handle.run_id == "run-1"
    assert handle.dataset_id == "ds-1"
    assert server.sse_params == {"token": TOKEN}
    [post] = server.posts
    assert post["params"] == {"token": TOKEN, "session_id": "abc123"}
    assert post["body"]["method"] == "tools/call"
    assert post["body"]["params"] == {"name": "epctex-slash-realtor-scraper", "arguments": {"search": "Austin, TX"}}
    assert server.stream.closed


def test_invoke_tool_surfaces_remote_error():
    def respond(body):
        yield _event("message", json.dumps({"jsonrpc": "2.0", "id": body["id"], "error": {"message": "unknown tool"}}))

    server = FakeMcpServer(respond)
    with pytest.raises(ProtocolError, match="unknown tool"):
        _invoke(server)
    assert server.stream.closed


def test_invoke_tool_requires_pollable_ids():
    def respond(body):
        yield _event("message", json.dumps({"jsonrpc": "2.0", "id": body["id"], "result": {"content": []}}))

    with pytest.raises(ProtocolError, match="missing pollable identifiers"):
        _invoke(FakeMcpServer(respond))


def test_invoke_tool_stream_closed_without_result():
    def respond(body):
        yield None

    with pytest.raises(ProtocolError):
        _invoke(FakeMcpServer(respond))


def test_invoke_tool_times_out_and_closes_stream():
    def respond(body):
        return []

    server = FakeMcpServer(respond)
    with pytest.raises(InvokeTimeoutError):
        _invoke(server, timeout=0.1)
    assert server.stream.closed


def test_invoke_tool_times_out_waiting_for_endpoint():
    stream = EventStream()
    posts = []

    async def handler(request):
        if request.method == "POST":
            posts.append(request)
            return httpx.Response(202, text="Accepted")
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await invoker.invoke_tool(
                "epctex-slash-realtor-scraper",
                {"search": "Austin, TX"},
                TOKEN,
                base_url=BASE_URL,
                timeout=0.1,
                client=client,
            )

    with pytest.raises(InvokeTimeoutError):
        asyncio.run(_go())
    assert stream.closed
    assert posts == []


def test_invoke_tool_http_error_is_transport_error():
    async def handler(request):
        return httpx.Response(401, json={"error": "unauthorized"})

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await invoker.invoke_tool("tool", {}, TOKEN, base_url=BASE_URL, timeout=5, client=client)

    with pytest.raises(TransportError):
        asyncio.run(_go())


def test_invoke_tool_requires_credential():
    with pytest.raises(ConfigurationError):
        asyncio.run(invoker.invoke_tool("tool", {}, None, base_url=BASE_URL))
