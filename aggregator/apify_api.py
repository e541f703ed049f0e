from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apify_client import ApifyClientAsync

from telemetry.logging_utils import get_logger
from telemetry.retry import retry_async_with_backoff

from .config import (
    DEFAULT_DATASET_LIMIT,
    DEFAULT_MAX_POLL_DURATION_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_STATUS_RETRIES,
)
from .errors import ConfigurationError, PollTimeoutError, ProtocolError, RunFailedError, TransportError
from .models import RunStatus

logger = get_logger(__name__)

APIFY_REQUEST_TIMEOUT_SECONDS = 60.0


def get_apify_client(token: Optional[str]) -> ApifyClientAsync:
    if not token:
        raise ConfigurationError("APIFY_TOKEN (or APIFY_API_TOKEN) is required to talk to the Apify API.")
    return ApifyClientAsync(token)


async def _bounded(call: Awaitable[Any], what: str, timeout: float) -> Any:
    """Await an Apify client call with a deadline, mapping failures to TransportError."""
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as exc:
        raise TransportError(f"Timed out after {timeout:.0f}s while {what}.") from exc
    except Exception as exc:
        raise TransportError(f"Failed while {what}: {exc}") from exc


async def get_run_status(
    client: ApifyClientAsync,
    run_id: str,
    *,
    retries: int = DEFAULT_STATUS_RETRIES,
    request_timeout: float = APIFY_REQUEST_TIMEOUT_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Dict[str, Any]:
    """Fetch the run object (``data`` of ``GET /v2/actor-runs/<id>``), retrying transport errors."""
    run = await retry_async_with_backoff(
        lambda: _bounded(client.run(run_id).get(), f"fetching run details for {run_id}", request_timeout),
        retries=retries,
        retry_exceptions=(TransportError,),
        label="apify_run_status",
        sleep=sleep,
    )
    if not isinstance(run, dict):
        raise ProtocolError(f"Actor run {run_id} was not found.")
    return run


async def poll_until_done(
    run_id: str,
    credential: Optional[str],
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_duration: float = DEFAULT_MAX_POLL_DURATION_SECONDS,
    status_retries: int = DEFAULT_STATUS_RETRIES,
    client: Optional[ApifyClientAsync] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """Wait for an actor run to finish and return its default dataset id.

    FAILED, TIMED-OUT and ABORTED end the wait at once with RunFailedError.
    Any other non-terminal status sleeps ``poll_interval`` and checks again
    until ``max_duration`` has elapsed (PollTimeoutError).
    """
    apify = client or get_apify_client(credential)
    started = clock()
    polls = 0
    logger.info("run_poll_start", extra={"run_id": run_id, "interval_s": poll_interval, "max_duration_s": max_duration})
    while clock() - started < max_duration:
        run = await get_run_status(apify, run_id, retries=status_retries, sleep=sleep)
        polls += 1
        raw_status = run.get("status")
        status = RunStatus.parse(raw_status)
        logger.info(
            "run_poll_status",
            extra={"run_id": run_id, "status": raw_status, "poll": polls, "dataset_id": run.get("defaultDatasetId")},
        )
        if status is RunStatus.SUCCEEDED:
            dataset_id = run.get("defaultDatasetId")
            if not dataset_id:
                raise ProtocolError(f"Actor run {run_id} succeeded without a defaultDatasetId.")
            logger.info("run_poll_succeeded", extra={"run_id": run_id, "dataset_id": dataset_id, "polls": polls})
            return str(dataset_id)
        if status is not None and status.is_failure:
            logger.error("run_poll_failed", extra={"run_id": run_id, "status": raw_status, "polls": polls})
            raise RunFailedError(run_id, raw_status)
        await sleep(poll_interval)

    logger.error("run_poll_timeout", extra={"run_id": run_id, "polls": polls, "max_duration_s": max_duration})
    raise PollTimeoutError(f"Actor run {run_id} did not finish within {max_duration:.0f}s.")


async def fetch_records(
    dataset_id: str,
    credential: Optional[str],
    *,
    limit: int = DEFAULT_DATASET_LIMIT,
    client: Optional[ApifyClientAsync] = None,
    request_timeout: float = APIFY_REQUEST_TIMEOUT_SECONDS,
) -> List[Dict[str, Any]]:
    """Read up to ``limit`` clean items from a dataset in a single request."""
    apify = client or get_apify_client(credential)
    page = await _bounded(
        apify.dataset(dataset_id).list_items(limit=limit, clean=True),
        f"fetching dataset items for {dataset_id}",
        request_timeout,
    )
    items = list(getattr(page, "items", None) or [])
    records = [item for item in items if isinstance(item, dict)]
    if len(records) != len(items):
        logger.warning(
            "dataset_items_skipped",
            extra={"dataset_id": dataset_id, "skipped": len(items) - len(records)},
        )
    logger.info("dataset_fetch_complete", extra={"dataset_id": dataset_id, "records": len(records), "limit": limit})
    return records
