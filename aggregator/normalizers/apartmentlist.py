"""
epctex/apartmentlist-scraper (ApartmentList) records.

Each record is a building with a ``units`` list. Every unit becomes its own
property: price, bed/bath, size, photos, link and availability come from the
unit, while address, coordinates, description and amenities are inherited
from the building. A building without units yields nothing.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import ValidationError

from telemetry.logging_utils import get_logger

from ..models import UnifiedProperty
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
    parse_bathrooms,
    parse_bedrooms,
    parse_numeric,
    record_scraped_at,
    string_list,
)

logger = get_logger(__name__)

SOURCE_TAG = "apartmentlist-scraper"

UNIT_NAME_FIELDS = (key("name"), key("remoteListingId"), key("id"))
UNIT_ID_FIELDS = (key("id"), key("remoteListingId"))


def _unit_title(property_name: str, unit: RawRecord) -> str:
    unit_name = first_present(unit, UNIT_NAME_FIELDS)
    if is_present(unit_name):
        return f"{property_name} - Unit {unit_name}"
    return property_name


def _unit_id(item: RawRecord, unit: RawRecord, ctx: NormalizeContext) -> str:
    unit_key = first_present(unit, UNIT_ID_FIELDS)
    if is_present(item.get("id")):
        return f"{item['id']}-{unit_key}"
    if is_present(unit_key):
        return f"aptlist-{unit_key}"
    return ctx.synthetic_id(prefix="aptlist")


def _unit_availability(unit: RawRecord) -> Optional[str]:
    if is_present(unit.get("availableOn")):
        return f"Available from {unit['availableOn']}"
    if is_present(unit.get("availability")):
        return str(unit["availability"])
    return None


def _unit_status(item: RawRecord, unit: RawRecord) -> str:
    if is_present(unit.get("availability")):
        return str(unit["availability"])
    return "active" if item.get("isActive") else as_text(None)


def _photos(value: Any) -> List[str]:
    return clean_images(value) if isinstance(value, list) else []


def normalize_units(item: RawRecord, ctx: NormalizeContext) -> List[UnifiedProperty]:
    """Expand one building into per-unit properties (unvalidated)."""
    units = item.get("units")
    if not isinstance(units, list):
        logger.warning(
            "apartmentlist_record_without_units",
            extra={"record_id": item.get("id"), "url": item.get("url")},
        )
        return []

    property_name = as_text(item.get("propertyName"))
    location_block = item.get("location") if isinstance(item.get("location"), dict) else {}
    address = as_text(first_present(location_block, (key("streetAddress"), key("streedAddress"))))
    city = as_text(location_block.get("city"))
    state = as_text(location_block.get("state"))
    shared = {
        "source": ctx.source,
        "location": as_text(location_block.get("fullAddress"), default=compose_location(address, city, state)),
        "address": address,
        "city": city,
        "state": state,
        "zip_code": as_text(location_block.get("postalCode"), default=""),
        "description": as_text(item.get("description"), default=""),
        "property_type": as_text(item.get("rentalType"), default="apartment"),
        "scraped_at": record_scraped_at(item, ctx),
        "amenities": string_list(item.get("amenities")),
        "coordinates": make_coordinates(dig(item, "coordinates", "latitude"), dig(item, "coordinates", "longitude")),
        "pet_policy": as_text(item.get("petPolicy"), default="") or None,
    }
    building_photos = _photos(item.get("photos"))

    expanded: List[UnifiedProperty] = []
    for position, unit in enumerate(units):
        if not isinstance(unit, dict):
            continue
        try:
            expanded.append(
                UnifiedProperty(
                    id=_unit_id(item, unit, ctx),
                    title=_unit_title(property_name, unit),
                    price=as_text(unit.get("price")),
                    price_numeric=parse_numeric(unit.get("price")),
                    bedrooms=parse_bedrooms(unit.get("bed")),
                    bathrooms=parse_bathrooms(unit.get("bath")),
                    area=as_text(unit.get("sqft")),
                    area_numeric=parse_numeric(unit.get("sqft")),
                    images=_photos(unit.get("photos")) or building_photos,
                    url=as_text(unit.get("applyOnlineUrl") or item.get("url"), default="#"),
                    home_status=_unit_status(item, unit),
                    availability=_unit_availability(unit),
                    **shared,
                )
            )
        except (ValidationError, TypeError, ValueError, OverflowError) as exc:
            logger.warning(
                "apartmentlist_unit_skipped",
                extra={"record_id": item.get("id"), "unit": position, "error": str(exc)[:200]},
            )
    return expanded
