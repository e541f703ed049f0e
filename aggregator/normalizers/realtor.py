"""epctex/realtor-scraper (Realtor.com) records: one property per record."""

from __future__ import annotations

from typing import Any, List

from ..models import UnifiedProperty
from .common import (
    NormalizeContext,
    RawRecord,
    as_text,
    clean_images,
    compose_location,
    dig,
    first_present,
    key,
    make_coordinates,
    natural_id,
    parse_bathrooms,
    parse_bedrooms,
    parse_numeric,
    record_contact,
    string_key,
)

SOURCE_TAG = "realtor-scraper"

INACTIVE_STATUS_MARKERS = ("sold", "off_market", "pending")

TITLE_FIELDS = (key("name"), key("address", "street"))
PRICE_FIELDS = (key("listPrice"), key("price"), key("lastSoldPrice"))
BATH_FIELDS = (key("baths_total"), key("baths"))
DESCRIPTION_FIELDS = (
    string_key("description", "text"),
    string_key("text"),
    string_key("history", 0, "listing", "description", "text"),
)


def _photo_urls(item: RawRecord) -> List[str]:
    photos = item.get("photos")
    if isinstance(photos, list) and photos:
        return clean_images(p if isinstance(p, str) else dig(p, "href") for p in photos)
    history_photos = dig(item, "history", 0, "listing", "photos")
    if isinstance(history_photos, list):
        return clean_images(dig(p, "href") for p in history_photos)
    return []


def _is_declined(value: Any) -> bool:
    return str(value).strip().lower() == "no"


def _features(item: RawRecord) -> List[str]:
    features: List[str] = []
    if item.get("cooling"):
        features.append(f"Cooling: {item['cooling']}")
    if item.get("heating"):
        features.append(f"Heating: {item['heating']}")
    if item.get("fireplace") and not _is_declined(item["fireplace"]):
        features.append("Fireplace")
    if item.get("pool") and not _is_declined(item["pool"]):
        features.append("Pool")
    if item.get("garage_type"):
        features.append(f"Garage: {item['garage_type']}")
    if item.get("exterior"):
        features.append(f"Exterior: {item['exterior']}")
    return features


def is_active_listing(prop: UnifiedProperty) -> bool:
    """Realtor.com keeps sold, pending and off-market homes in its results."""
    status = prop.home_status.lower()
    return not any(marker in status for marker in INACTIVE_STATUS_MARKERS)


def normalize_record(item: RawRecord, ctx: NormalizeContext) -> List[UnifiedProperty]:
    address = as_text(dig(item, "address", "street"))
    city = as_text(dig(item, "address", "locality"))
    state = as_text(dig(item, "address", "region"))
    price_value = first_present(item, PRICE_FIELDS)

    return [
        UnifiedProperty(
            id=natural_id(item, ctx),
            source=ctx.source,
            title=as_text(first_present(item, TITLE_FIELDS)),
            price=as_text(price_value),
            price_numeric=parse_numeric(price_value),
            location=compose_location(address, city, state),
            address=address,
            city=city,
            state=state,
            zip_code=as_text(dig(item, "address", "postalCode"), default=""),
            bedrooms=parse_bedrooms(item.get("beds")),
            bathrooms=parse_bathrooms(first_present(item, BATH_FIELDS)),
            area=as_text(item.get("sqft")),
            area_numeric=parse_numeric(item.get("sqft")),
            images=_photo_urls(item),
            description=as_text(first_present(item, DESCRIPTION_FIELDS), default=""),
            url=as_text(item.get("url"), default="#"),
            property_type=as_text(item.get("type")),
            home_status=as_text(item.get("status")),
            # Realtor.com items carry no scrape timestamp
            scraped_at=ctx.scraped_at,
            features=_features(item),
            contact_info=record_contact(item),
            coordinates=make_coordinates(dig(item, "coordinates", "latitude"), dig(item, "coordinates", "longitude")),
        )
    ]
