from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Iterable, Optional, Type, TypeVar

from telemetry.logging_utils import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def _compute_backoff(attempt: int, base_delay: float, factor: float, jitter: float) -> float:
    delay = base_delay * (factor ** attempt)
    if jitter:
        delay += random.uniform(0, jitter)
    return delay


async def retry_async_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 0.5,
    factor: float = 2.0,
    jitter: float = 0.1,
    retry_exceptions: Iterable[Type[BaseException]] = (Exception,),
    label: Optional[str] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    retry_on = tuple(retry_exceptions)
    attempts = max(retries, 1)
    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as exc:
            if attempt >= attempts - 1:
                raise
            logger.warning("retrying_after_error", extra={"label": label, "attempt": attempt + 1, "error": str(exc)[:200]})
            await sleep(_compute_backoff(attempt, base_delay, factor, jitter))
    raise AssertionError("unreachable")
