"""
Catch-all extraction used for Zillow (jupri/zillow-scraper) and any source we
do not recognise. Every field is an ordered cascade of candidate keys; the
first present value wins.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence

from ..models import Coordinates, UnifiedProperty
from .common import (
    NormalizeContext,
    RawRecord,
    as_text,
    clean_images,
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
    scalar_key,
    string_key,
    string_list,
)

ZILLOW_TAG = "zillow"
ZILLOW_RENTAL_STATUSES = frozenset({"FOR_RENT", "RENT", "APARTMENT_COMMUNITY", "APARTMENTS"})
PHOTO_SIZE_KEYS = ("url", "href", "desktop", "high", "medium", "thumb")
MEDIA_PHOTO_SIZE_KEYS = ("high", "desktop", "medium", "thumb")


def _last_price_entry(record: RawRecord) -> Any:
    prices = record.get("price")
    if isinstance(prices, list) and prices:
        return dig(prices, -1, "price")
    return None


def _joined(*paths: Sequence[str]) -> Callable[[RawRecord], Optional[str]]:
    """Join several string fields with ", " only when every one is present."""

    def _extract(record: RawRecord) -> Optional[str]:
        parts = [dig(record, *path) for path in paths]
        if all(isinstance(p, str) and p.strip() for p in parts):
            return ", ".join(p.strip() for p in parts)
        return None

    return _extract


TITLE_FIELDS = (
    scalar_key("title"),
    scalar_key("streetAddress"),
    scalar_key("Title"),
    scalar_key("address", "streetAddress"),
    string_key("address"),
)
PRICE_FIELDS = (
    scalar_key("price", "value"),
    scalar_key("price", "data", "price"),
    _last_price_entry,
    scalar_key("price"),
    scalar_key("Price"),
)
LOCATION_FIELDS = (
    string_key("location"),
    string_key("regionString"),
    _joined(("address", "city"), ("address", "state")),
    _joined(("city",), ("state",)),
    string_key("Location"),
)
ADDRESS_FIELDS = (scalar_key("address", "streetAddress"), scalar_key("streetAddress"), string_key("Address"))
CITY_FIELDS = (scalar_key("city"), scalar_key("address", "city"))
STATE_FIELDS = (scalar_key("state"), scalar_key("address", "state"))
ZIP_FIELDS = (scalar_key("zipcode"), scalar_key("address", "zipcode"), scalar_key("zipCode"))
BED_FIELDS = (key("bedrooms"), key("beds"), key("Bedrooms"), key("bed"))
BATH_FIELDS = (key("bathrooms"), key("baths"), key("Bathrooms"), key("bath"))
AREA_FIELDS = (scalar_key("livingArea", "value"), scalar_key("livingArea"), scalar_key("sqft"), scalar_key("Area"))
URL_FIELDS = (string_key("url"), string_key("detailUrl"), string_key("URL"))
PROPERTY_TYPE_FIELDS = (scalar_key("propertyType"), scalar_key("homeType"), scalar_key("PropertyType"))
STATUS_FIELDS = (key("homeStatus"), key("HomeStatus"))


def _photo_list_urls(record: RawRecord) -> List[Any]:
    photos = record.get("photos")
    if not isinstance(photos, list):
        return []
    urls: List[Any] = []
    for photo in photos:
        if isinstance(photo, str):
            urls.append(photo)
        elif isinstance(photo, dict):
            urls.append(first_present(photo, tuple(string_key(size) for size in PHOTO_SIZE_KEYS)))
    return urls


def _media_photo_urls(record: RawRecord) -> List[Any]:
    photo = dig(record, "media", "photo")
    if not isinstance(photo, dict):
        return []
    return [photo.get(size) for size in MEDIA_PHOTO_SIZE_KEYS]


def _single_image(field_name: str) -> Callable[[RawRecord], List[Any]]:
    def _extract(record: RawRecord) -> List[Any]:
        value = record.get(field_name)
        return [value] if isinstance(value, str) else []

    return _extract


def _media_list_urls(record: RawRecord) -> List[Any]:
    media = record.get("Media")
    if not isinstance(media, list):
        return []
    return [dig(m, "url") for m in media]


def _zillow_gallery_urls(record: RawRecord) -> List[Any]:
    if not is_present(record.get("zpid")):
        return []
    photos = dig(record, "hdpData", "homeInfo", "photos")
    if not isinstance(photos, list):
        return []
    urls: List[Any] = []
    for photo in photos:
        jpegs = dig(photo, "mixedSources", "jpeg")
        if isinstance(jpegs, list):
            urls.extend(dig(j, "url") for j in jpegs)
    return urls


IMAGE_SOURCES = (
    _photo_list_urls,
    _media_photo_urls,
    _single_image("imgSrc"),
    _single_image("image"),
    _media_list_urls,
    _zillow_gallery_urls,
)


def extract_images(record: RawRecord) -> List[str]:
    """First image source that yields any usable URL wins."""
    for source in IMAGE_SOURCES:
        urls = clean_images(source(record))
        if urls:
            return urls
    return []


def _coordinates(record: RawRecord) -> Optional[Coordinates]:
    if isinstance(record.get("latLong"), dict):
        coords = make_coordinates(dig(record, "latLong", "latitude"), dig(record, "latLong", "longitude"))
        if coords is not None:
            return coords
    return make_coordinates(record.get("latitude"), record.get("longitude"))


def _features(record: RawRecord) -> List[str]:
    if isinstance(record.get("features"), list):
        return string_list(record["features"])
    # sic: some Zillow actors emit "attirbutes"
    return string_list(record.get("attirbutes"))


def zillow_permalink(zpid: Any) -> str:
    return f"https://www.zillow.com/homedetails/{zpid}_zpid/"


def _url(record: RawRecord, ctx: NormalizeContext) -> str:
    url = first_present(record, URL_FIELDS)
    zpid = record.get("zpid")
    if ZILLOW_TAG in ctx.source_key and is_present(zpid) and not (isinstance(url, str) and url.startswith("http")):
        return zillow_permalink(zpid)
    return as_text(url, default="#")


def is_zillow_rental(prop: UnifiedProperty) -> bool:
    """Zillow searches mix for-sale and sold homes into rental results."""
    return prop.home_status.upper() in ZILLOW_RENTAL_STATUSES


def normalize_record(item: RawRecord, ctx: NormalizeContext) -> List[UnifiedProperty]:
    price_value = first_present(item, PRICE_FIELDS)
    area_value = first_present(item, AREA_FIELDS)

    return [
        UnifiedProperty(
            id=natural_id(item, ctx),
            source=ctx.source,
            title=as_text(first_present(item, TITLE_FIELDS)),
            price=as_text(price_value),
            price_numeric=parse_numeric(price_value),
            location=as_text(first_present(item, LOCATION_FIELDS)),
            address=as_text(first_present(item, ADDRESS_FIELDS)),
            city=as_text(first_present(item, CITY_FIELDS)),
            state=as_text(first_present(item, STATE_FIELDS), default=""),
            zip_code=as_text(first_present(item, ZIP_FIELDS), default=""),
            bedrooms=parse_bedrooms(first_present(item, BED_FIELDS)),
            bathrooms=parse_bathrooms(first_present(item, BATH_FIELDS)),
            area=as_text(area_value),
            area_numeric=parse_numeric(area_value),
            images=extract_images(item),
            description=as_text(item.get("description"), default=""),
            url=_url(item, ctx),
            property_type=as_text(first_present(item, PROPERTY_TYPE_FIELDS)),
            home_status=as_text(first_present(item, STATUS_FIELDS)),
            scraped_at=record_scraped_at(item, ctx),
            features=_features(item),
            amenities=string_list(item.get("amenities")),
            contact_info=record_contact(item),
            coordinates=_coordinates(item),
        )
    ]
