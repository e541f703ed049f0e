"""
Search by tool name + arguments and get back unified properties.

invoke -> poll (when a run id came back) -> fetch -> normalize -> dedupe.
Any failure along the way is logged and yields an empty list for that
source; only a missing credential reaches the caller.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from telemetry.logging_utils import get_logger
from telemetry.metrics import timed_operation

from .apify_api import fetch_records, poll_until_done
from .config import PipelineSettings
from .dedupe import dedupe
from .errors import AggregatorError, ConfigurationError, ProtocolError
from .invoker import invoke_tool
from .models import UnifiedProperty
from .normalizers import normalize
from .tools import resolve_tool_name

logger = get_logger(__name__)

SearchRequest = Tuple[str, Optional[Dict[str, Any]]]


def _resolve_settings(credential: Optional[str], settings: Optional[PipelineSettings]) -> PipelineSettings:
    resolved = (settings or PipelineSettings.from_env()).with_token(credential)
    resolved.require_token()
    return resolved


async def _run_pipeline(
    backend_tool: str,
    arguments: Dict[str, Any],
    settings: PipelineSettings,
    search_id: str,
) -> List[UnifiedProperty]:
    token = settings.apify_token
    handle = await invoke_tool(
        backend_tool,
        arguments,
        token,
        base_url=settings.mcp_server_url,
        timeout=settings.invoke_timeout,
    )

    dataset_id = handle.dataset_id
    if handle.run_id:
        dataset_id = await poll_until_done(
            handle.run_id,
            token,
            poll_interval=settings.poll_interval,
            max_duration=settings.max_poll_duration,
            status_retries=settings.status_retries,
        )
    if not dataset_id:
        raise ProtocolError(f"No dataset id available for tool {backend_tool}.")

    records = await fetch_records(dataset_id, token, limit=settings.dataset_limit)
    logger.info(
        "search_records_fetched",
        extra={"search_id": search_id, "tool": backend_tool, "dataset_id": dataset_id, "records": len(records)},
    )
    return dedupe(normalize(records, backend_tool))


async def search(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = None,
    credential: Optional[str] = None,
    *,
    settings: Optional[PipelineSettings] = None,
) -> List[UnifiedProperty]:
    """Run one actor end to end.

    Raises ConfigurationError when no credential is configured; every other
    failure is logged and returns ``[]``.
    """
    settings = _resolve_settings(credential, settings)
    backend_tool = resolve_tool_name(tool_name)
    search_id = uuid.uuid4().hex[:12]
    logger.info(
        "search_start",
        extra={"search_id": search_id, "tool": tool_name, "backend_tool": backend_tool},
    )

    with timed_operation("search", backend_tool, search_id) as timer:
        try:
            properties = await asyncio.wait_for(
                _run_pipeline(backend_tool, dict(arguments or {}), settings, search_id),
                settings.search_timeout,
            )
        except ConfigurationError:
            raise
        # before TimeoutError: InvokeTimeoutError and PollTimeoutError are both
        except AggregatorError as exc:
            timer.outcome = type(exc).__name__
            logger.error(
                "search_failed",
                extra={"search_id": search_id, "tool": backend_tool, "error": str(exc)[:300], "error_type": type(exc).__name__},
            )
            return []
        except asyncio.TimeoutError:
            timer.outcome = "timeout"
            logger.error(
                "search_timeout",
                extra={"search_id": search_id, "tool": backend_tool, "timeout_s": settings.search_timeout},
            )
            return []
        except Exception as exc:
            timer.outcome = "unexpected_error"
            logger.exception(
                "search_unexpected_error",
                extra={"search_id": search_id, "tool": backend_tool, "error": str(exc)[:300]},
            )
            return []
        timer.records = len(properties)

    logger.info(
        "search_complete",
        extra={"search_id": search_id, "tool": backend_tool, "properties": len(properties)},
    )
    return properties


async def search_many(
    requests: Iterable[SearchRequest],
    credential: Optional[str] = None,
    *,
    settings: Optional[PipelineSettings] = None,
) -> List[UnifiedProperty]:
    """Fan several searches out concurrently; results in request order, deduplicated across sources."""
    settings = _resolve_settings(credential, settings)
    batch: Sequence[SearchRequest] = list(requests)
    if not batch:
        return []

    outcomes = await asyncio.gather(
        *(search(tool_name, arguments, settings=settings) for tool_name, arguments in batch),
        return_exceptions=True,
    )

    combined: List[UnifiedProperty] = []
    for (tool_name, _), outcome in zip(batch, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(
                "search_many_source_failed",
                extra={"tool": tool_name, "error": str(outcome)[:300], "error_type": type(outcome).__name__},
            )
            continue
        combined.extend(outcome)

    unique = dedupe(combined)
    logger.info(
        "search_many_complete",
        extra={"sources": len(batch), "properties": len(combined), "unique": len(unique)},
    )
    return unique


def search_sync(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = None,
    credential: Optional[str] = None,
    *,
    settings: Optional[PipelineSettings] = None,
) -> List[UnifiedProperty]:
    """Blocking wrapper for scripts and the CLI."""
    return asyncio.run(search(tool_name, arguments, credential, settings=settings))
