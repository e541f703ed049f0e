"""
Map raw actor output onto UnifiedProperty.

The strategy is chosen from the source (actor) name by case-insensitive
substring match. Each strategy turns one raw record into zero or more
candidates; candidates then pass the source's own status filter and the
shared validity rule (positive price, real title). A record that blows up
is logged and skipped, never the whole batch.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, Tuple

from telemetry.logging_utils import get_logger

from ..models import UnifiedProperty
from . import apartmentlist, apartments, generic, realtor
from .common import NormalizeContext, RawRecord

logger = get_logger(__name__)

Strategy = Callable[[RawRecord, NormalizeContext], List[UnifiedProperty]]
StatusFilter = Callable[[UnifiedProperty], bool]

# Checked in order; the first tag found in the source name wins.
STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    (apartments.SOURCE_TAG, apartments.normalize_record),
    (realtor.SOURCE_TAG, realtor.normalize_record),
    (apartmentlist.SOURCE_TAG, apartmentlist.normalize_units),
)

STATUS_FILTERS: Tuple[Tuple[str, StatusFilter], ...] = (
    (generic.ZILLOW_TAG, generic.is_zillow_rental),
    (realtor.SOURCE_TAG, realtor.is_active_listing),
)


def select_strategy(source_name: str) -> Strategy:
    lowered = (source_name or "").lower()
    for tag, strategy in STRATEGIES:
        if tag in lowered:
            return strategy
    return generic.normalize_record


def _status_filters(source_name: str) -> List[StatusFilter]:
    lowered = (source_name or "").lower()
    return [predicate for tag, predicate in STATUS_FILTERS if tag in lowered]


def _accept(prop: UnifiedProperty, filters: Sequence[StatusFilter]) -> bool:
    for predicate in filters:
        if not predicate(prop):
            logger.debug(
                "property_skipped_status",
                extra={"source": prop.source, "title": prop.title, "status": prop.home_status},
            )
            return False
    if not prop.is_valid:
        logger.debug(
            "property_skipped_invalid",
            extra={"source": prop.source, "title": prop.title, "price": prop.price, "price_numeric": prop.price_numeric},
        )
        return False
    return True


def normalize(
    records: Any,
    source_name: str,
    *,
    context: Optional[NormalizeContext] = None,
) -> List[UnifiedProperty]:
    """Normalize a batch of raw records from one actor."""
    if not isinstance(records, list):
        logger.warning(
            "normalize_unexpected_payload",
            extra={"source": source_name, "payload_type": type(records).__name__},
        )
        return []

    ctx = context or NormalizeContext(source=source_name)
    strategy = select_strategy(source_name)
    filters = _status_filters(source_name)

    properties: List[UnifiedProperty] = []
    skipped_errors = 0
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            skipped_errors += 1
            continue
        try:
            candidates = strategy(record, ctx)
        except Exception as exc:
            skipped_errors += 1
            logger.warning(
                "record_normalize_failed",
                extra={"source": source_name, "index": index, "error": f"{type(exc).__name__}: {exc}"[:300]},
            )
            continue
        properties.extend(prop for prop in candidates if _accept(prop, filters))

    logger.info(
        "normalize_complete",
        extra={
            "source": source_name,
            "strategy": getattr(strategy, "__module__", "").rsplit(".", 1)[-1],
            "records": len(records),
            "properties": len(properties),
            "errors": skipped_errors,
        },
    )
    return properties


__all__ = ["NormalizeContext", "normalize", "select_strategy"]
