from __future__ import annotations

from typing import Iterable, List, Optional

from .models import UnifiedProperty

WITHIN_BUDGET_SCORE = 10
BEDROOM_MATCH_SCORE = 5
HAS_IMAGES_SCORE = 2


def score_property(
    prop: UnifiedProperty,
    *,
    max_price: Optional[float] = None,
    bedrooms: Optional[int] = None,
) -> int:
    score = 0
    if max_price and prop.price_numeric <= max_price:
        score += WITHIN_BUDGET_SCORE
    if bedrooms and prop.bedrooms == bedrooms:
        score += BEDROOM_MATCH_SCORE
    if prop.images:
        score += HAS_IMAGES_SCORE
    return score


def rank_properties(
    properties: Iterable[UnifiedProperty],
    *,
    max_price: Optional[float] = None,
    bedrooms: Optional[int] = None,
) -> List[UnifiedProperty]:
    """Best matches first; equal scores keep their input order."""
    return sorted(
        properties,
        key=lambda prop: score_property(prop, max_price=max_price, bedrooms=bedrooms),
        reverse=True,
    )
