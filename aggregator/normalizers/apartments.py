"""epctex/apartments-scraper (Apartments.com) records: one property per record."""

from __future__ import annotations

from typing import Any, List

from ..models import NOT_AVAILABLE, UnifiedProperty
from .common import (
    NormalizeContext,
    RawRecord,
    as_text,
    clean_images,
    compose_location,
    dig,
    first_present,
    is_present,
    key,
    make_coordinates,
    natural_id,
    parse_bathrooms,
    parse_bedrooms,
    parse_numeric,
    record_contact,
    record_scraped_at,
    record_status,
    unique,
)

SOURCE_TAG = "apartments-scraper"


def _rent_label(rent_min: Any, rent_max: Any) -> str:
    if is_present(rent_min) and is_present(rent_max) and rent_min != rent_max:
        return f"${rent_min} - ${rent_max}"
    if is_present(rent_min):
        return f"${rent_min}"
    if is_present(rent_max):
        return f"${rent_max}"
    return NOT_AVAILABLE


def _area_numeric(sqft: Any) -> float:
    # "700 - 950 sq ft" ranges keep their lower bound
    if isinstance(sqft, str):
        return parse_numeric(sqft.split("-")[0])
    return parse_numeric(sqft)


def _amenities(groups: Any) -> List[str]:
    """Amenities come grouped as ``[{"title": ..., "value": [...]}, ...]``."""
    if not isinstance(groups, list):
        return []
    flattened: List[str] = []
    for group in groups:
        if isinstance(group, dict) and isinstance(group.get("value"), list):
            flattened.extend(str(v) for v in group["value"] if isinstance(v, str) and v.strip())
        elif isinstance(group, str) and group.strip():
            flattened.append(group)
    return unique(flattened)


def normalize_record(item: RawRecord, ctx: NormalizeContext) -> List[UnifiedProperty]:
    rent_min = dig(item, "rent", "min")
    rent_max = dig(item, "rent", "max")

    location_block = item.get("location") if isinstance(item.get("location"), dict) else {}
    # the scraper has shipped both spellings
    address = as_text(first_present(location_block, (key("streetAddress"), key("streedAddress"))))
    city = as_text(location_block.get("city"))
    state = as_text(location_block.get("state"))
    location = as_text(location_block.get("fullAddress"), default=compose_location(address, city, state))

    photos = item.get("photos") if isinstance(item.get("photos"), list) else []

    return [
        UnifiedProperty(
            id=natural_id(item, ctx),
            source=ctx.source,
            title=as_text(item.get("propertyName")),
            price=_rent_label(rent_min, rent_max),
            price_numeric=parse_numeric(rent_min if is_present(rent_min) else rent_max),
            location=location,
            address=address,
            city=city,
            state=state,
            zip_code=as_text(location_block.get("postalCode"), default=""),
            bedrooms=parse_bedrooms(item.get("beds")),
            bathrooms=parse_bathrooms(item.get("baths")),
            area=as_text(item.get("sqft")),
            area_numeric=_area_numeric(item.get("sqft")),
            images=clean_images(photos),
            description=as_text(item.get("description"), default=""),
            url=as_text(item.get("url"), default="#"),
            property_type="apartment",
            home_status=record_status(item),
            scraped_at=record_scraped_at(item, ctx),
            amenities=_amenities(item.get("amenities")),
            contact_info=record_contact(item),
            coordinates=make_coordinates(dig(item, "coordinates", "latitude"), dig(item, "coordinates", "longitude")),
            pet_policy=as_text(item.get("petPolicy"), default="") or None,
        )
    ]
