from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from telemetry.logging_utils import get_logger

from .models import NOT_AVAILABLE, UnifiedProperty

logger = get_logger(__name__)


def _usable(value: str) -> str:
    text = (value or "").strip()
    return "" if text == NOT_AVAILABLE else text


def listing_key(prop: UnifiedProperty) -> Tuple[str, float, str]:
    """Address (or title) + exact price + location (or city), case-insensitive.

    Address drift between sources produces misses; empty addresses at the
    same price in the same city collide.
    """
    address_part = _usable(prop.address) or prop.title or ""
    location_part = _usable(prop.location) or prop.city or ""
    return address_part.lower(), prop.price_numeric, location_part.lower()


def dedupe(properties: Iterable[UnifiedProperty]) -> List[UnifiedProperty]:
    """Drop later listings whose key was already seen; first occurrence wins."""
    seen: Set[Tuple[str, float, str]] = set()
    unique: List[UnifiedProperty] = []
    total = 0
    for prop in properties:
        total += 1
        listing = listing_key(prop)
        if listing in seen:
            continue
        seen.add(listing)
        unique.append(prop)
    logger.info("dedupe_complete", extra={"input": total, "unique": len(unique)})
    return unique
