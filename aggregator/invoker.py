"""
Start an Apify actor through the property-search MCP server.

The server speaks MCP over Server-Sent Events with the Apify token in the
query string:

1. ``GET <base>/sse?token=...`` opens the stream; the first ``endpoint``
   event carries ``...sessionId=<id>``.
2. ``POST <base>/message?token=...&session_id=<id>`` submits a JSON-RPC
   ``tools/call`` envelope.
3. The answer arrives later as a ``message`` event on the same stream whose
   ``id`` echoes our correlation id.

The result only tells us where the actor run (or its dataset) lives; the
poller and fetcher take it from there.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import httpx
from httpx_sse import SSEError, aconnect_sse

from telemetry.logging_utils import get_logger

from .config import DEFAULT_INVOKE_TIMEOUT_SECONDS, DEFAULT_MCP_SERVER_URL
from .errors import ConfigurationError, InvokeTimeoutError, ParseError, ProtocolError, TransportError
from .models import JobHandle, JobInvocation

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"
RUN_INFO_PREFIX = "Actor finished with run information: "
SESSION_MARKER = "sessionId="

_DIRECT_RUN_KEYS = ("runId", "actorRunId")
_DIRECT_DATASET_KEYS = ("datasetId", "defaultDatasetId")
_NESTED_RUN_KEYS = ("id", "runId", "actorRunId")
_NESTED_DATASET_KEYS = ("defaultDatasetId", "datasetId")


def new_correlation_id() -> str:
    return f"chatprop-{int(time.time() * 1000)}-{uuid.uuid4().hex[:5]}"


def build_call_envelope(invocation: JobInvocation, correlation_id: str) -> Dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": correlation_id,
        "method": "tools/call",
        "params": {"name": invocation.tool_name, "arguments": invocation.arguments},
    }


def parse_session_id(endpoint_data: Optional[str]) -> str:
    """Pull ``sessionId`` out of an endpoint descriptor like ``/message?sessionId=abc``."""
    if not endpoint_data or SESSION_MARKER not in endpoint_data:
        raise ProtocolError(f"Invalid endpoint data received from MCP server: {endpoint_data!r}")
    session_id = endpoint_data.split(SESSION_MARKER, 1)[1].split("&", 1)[0].strip()
    if not session_id:
        raise ProtocolError("Could not extract sessionId from endpoint data.")
    return session_id


def _first_string(source: Dict[str, Any], keys: Tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = source.get(key)
        if value:
            return str(value)
    return None


def parse_run_info_text(text: str) -> Dict[str, Any]:
    """Decode the JSON run info the server nests in ``result.content[0].text``.

    Raises ParseError when the text is not a JSON object.
    """
    payload = text
    if text.startswith(RUN_INFO_PREFIX):
        brace = text.find("{")
        if brace == -1:
            raise ParseError("Run information prefix is not followed by a JSON object.")
        payload = text[brace:]
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Nested run information is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ParseError(f"Nested run information is a {type(parsed).__name__}, not an object.")
    return parsed


def _nested_text(result: Dict[str, Any]) -> Optional[str]:
    content = result.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    if not isinstance(first, dict) or first.get("type") != "text":
        return None
    text = first.get("text")
    return text if isinstance(text, str) and text else None


def extract_job_handle(result: Any) -> JobHandle:
    """Find run/dataset ids in a ``tools/call`` result; direct keys beat nested ones."""
    if not isinstance(result, dict):
        return JobHandle()
    run_id = _first_string(result, _DIRECT_RUN_KEYS)
    dataset_id = _first_string(result, _DIRECT_DATASET_KEYS)

    text = _nested_text(result)
    if text is not None:
        try:
            nested = parse_run_info_text(text)
        except ParseError as exc:
            logger.warning("mcp_result_text_unparsed", extra={"error": str(exc)[:200], "text": text[:200]})
        else:
            run_id = run_id or _first_string(nested, _NESTED_RUN_KEYS)
            dataset_id = dataset_id or _first_string(nested, _NESTED_DATASET_KEYS)
    return JobHandle(run_id=run_id, dataset_id=dataset_id)


def _match_result(data: str, correlation_id: str, tool_name: str) -> Optional[JobHandle]:
    """Return a handle if this ``message`` event answers our call, else None."""
    try:
        message = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("mcp_message_ignored", extra={"reason": "not_json", "data": data[:200]})
        return None
    if not isinstance(message, dict) or message.get("id") != correlation_id:
        other_id = message.get("id") if isinstance(message, dict) else None
        logger.debug("mcp_message_ignored", extra={"reason": "other_id", "message_id": other_id})
        return None

    error = message.get("error")
    if error:
        detail = error.get("message") if isinstance(error, dict) else None
        raise ProtocolError(f"MCP tool {tool_name} returned error: {detail or json.dumps(error)[:300]}")

    if "result" not in message:
        return None
    handle = extract_job_handle(message["result"])
    if not handle.is_usable:
        logger.error(
            "mcp_result_missing_ids",
            extra={"tool": tool_name, "correlation_id": correlation_id, "result": json.dumps(message["result"])[:1000]},
        )
        raise ProtocolError(f"MCP tool {tool_name} ({correlation_id}) result missing pollable identifiers.")
    return handle


async def _submit_call(
    http: httpx.AsyncClient,
    base_url: str,
    credential: str,
    session_id: str,
    envelope: Dict[str, Any],
) -> None:
    response = await http.post(
        f"{base_url}/message",
        params={"token": credential, "session_id": session_id},
        json=envelope,
    )
    if response.is_error:
        raise TransportError(f"MCP tool_call POST failed: {response.status_code} - {response.text[:300]}")


async def _exchange(
    http: httpx.AsyncClient,
    invocation: JobInvocation,
    correlation_id: str,
    credential: str,
    base_url: str,
) -> JobHandle:
    try:
        async with aconnect_sse(http, "GET", f"{base_url}/sse", params={"token": credential}) as event_source:
            event_source.response.raise_for_status()
            logger.info("mcp_stream_open", extra={"tool": invocation.tool_name, "correlation_id": correlation_id})
            session_id: Optional[str] = None
            try:
                async for sse in event_source.aiter_sse():
                    if sse.event == "endpoint":
                        if session_id is not None:
                            continue
                        session_id = parse_session_id(sse.data)
                        await _submit_call(
                            http, base_url, credential, session_id, build_call_envelope(invocation, correlation_id)
                        )
                        logger.info(
                            "mcp_call_submitted",
                            extra={"tool": invocation.tool_name, "correlation_id": correlation_id, "session_id": session_id},
                        )
                    elif sse.event == "message":
                        handle = _match_result(sse.data, correlation_id, invocation.tool_name)
                        if handle is not None:
                            return handle
            finally:
                logger.info("mcp_stream_closed", extra={"tool": invocation.tool_name, "correlation_id": correlation_id})
    except SSEError as exc:
        raise ProtocolError(f"MCP server did not answer with an event stream: {exc}") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"SSE error with MCP tool {invocation.tool_name}: {exc}") from exc
    raise ProtocolError(f"MCP stream closed before tool {invocation.tool_name} returned a result.")


async def invoke_tool(
    tool_name: str,
    arguments: Optional[Dict[str, Any]],
    credential: Optional[str],
    *,
    base_url: str = DEFAULT_MCP_SERVER_URL,
    timeout: float = DEFAULT_INVOKE_TIMEOUT_SECONDS,
    client: Optional[httpx.AsyncClient] = None,
) -> JobHandle:
    """Call one MCP tool and return the run/dataset ids it reports.

    The event stream is always closed before this returns or raises.
    """
    if not credential:
        raise ConfigurationError("Apify API token is required for MCP communication.")

    invocation = JobInvocation(tool_name=tool_name, arguments=dict(arguments or {}))
    correlation_id = new_correlation_id()
    base_url = base_url.rstrip("/")
    logger.info(
        "mcp_invoke_start",
        extra={
            "tool": tool_name,
            "correlation_id": correlation_id,
            "server": base_url,
            "argument_keys": sorted(invocation.arguments.keys()),
        },
    )

    owns_client = client is None
    # Reads on the stream may legitimately stall for minutes; the overall wait is bounded below.
    http = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
    try:
        handle = await asyncio.wait_for(
            _exchange(http, invocation, correlation_id, credential, base_url),
            timeout,
        )
    except asyncio.TimeoutError as exc:
        logger.error("mcp_invoke_timeout", extra={"tool": tool_name, "correlation_id": correlation_id, "timeout_s": timeout})
        raise InvokeTimeoutError(f"Timeout waiting for MCP tool {tool_name} to respond") from exc
    finally:
        if owns_client:
            await http.aclose()

    logger.info(
        "mcp_invoke_complete",
        extra={"tool": tool_name, "correlation_id": correlation_id, "run_id": handle.run_id, "dataset_id": handle.dataset_id},
    )
    return handle
