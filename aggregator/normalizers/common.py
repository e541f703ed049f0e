"""Defensive accessors and parsers shared by every source strategy."""

from __future__ import annotations

import math
import random
import re
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..models import NOT_AVAILABLE, ContactInfo, Coordinates

RawRecord = dict
Extractor = Callable[[RawRecord], Any]

_NON_NUMERIC_RE = re.compile(r"[^0-9.]+")
_INT_RE = re.compile(r"\d+")
_DECIMAL_RE = re.compile(r"\d*\.?\d+")
_STUDIO_VALUES = {"studio", "s"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _random_suffix() -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=9))


@dataclass(frozen=True)
class NormalizeContext:
    """Per-batch inputs: the source tag plus the two non-deterministic defaults."""

    source: str
    scraped_at: str = field(default_factory=_now_iso)
    random_suffix: Callable[[], str] = _random_suffix

    @property
    def source_key(self) -> str:
        return self.source.lower()

    def synthetic_id(self, prefix: Optional[str] = None) -> str:
        if prefix:
            return f"{prefix}-{self.random_suffix()}"
        safe_source = re.sub(r"[^a-zA-Z0-9]", "_", self.source)
        return f"mcp-{safe_source}-{self.random_suffix()}"


def dig(value: Any, *path: Any) -> Any:
    """Walk nested dicts/lists; any missing step yields None."""
    current = value
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not current:
                return None
            try:
                current = current[step]
            except IndexError:
                return None
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return True


def first_present(record: RawRecord, extractors: Sequence[Extractor]) -> Any:
    """Try extractors in order; the first present value wins."""
    for extractor in extractors:
        value = extractor(record)
        if is_present(value):
            return value
    return None


def key(*path: Any) -> Extractor:
    return lambda record: dig(record, *path)


def string_key(*path: Any) -> Extractor:
    """Like ``key`` but only accepts string values."""

    def _extract(record: RawRecord) -> Optional[str]:
        value = dig(record, *path)
        return value if isinstance(value, str) else None

    return _extract


def as_text(value: Any, default: str = NOT_AVAILABLE) -> str:
    if value is None or isinstance(value, (dict, list, bool)):
        return default
    return str(value).strip() or default


def parse_numeric(value: Any) -> float:
    """Strip everything except digits and dots; 0 when nothing parseable is left."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) and value > 0 else 0.0
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    match = re.match(r"\d*\.?\d+|\d+", cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def parse_bedrooms(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0) if math.isfinite(value) else 0
    text = str(value).strip().lower()
    if text in _STUDIO_VALUES or "studio" in text:
        return 0
    match = _INT_RE.search(text)
    return int(match.group(0)) if match else 0


def parse_bathrooms(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return max(float(value), 0.0) if math.isfinite(value) else 0.0
    match = _DECIMAL_RE.search(str(value))
    return float(match.group(0)) if match else 0.0


def unique(values: Iterable[Any]) -> List[Any]:
    seen = set()
    ordered: List[Any] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def clean_images(urls: Iterable[Any]) -> List[str]:
    """Keep absolute http(s) URLs (case-sensitive scheme), first occurrence only."""
    return unique(u for u in urls if isinstance(u, str) and u.startswith("http"))


def string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return unique(str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip())


def compose_location(address: str, city: str, state: str) -> str:
    parts = [p for p in (address, city, state) if p and p != NOT_AVAILABLE]
    return ", ".join(parts) if parts else NOT_AVAILABLE


def make_coordinates(lat: Any, lng: Any) -> Optional[Coordinates]:
    try:
        if lat is None or lng is None:
            return None
        return Coordinates(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError):
        return None


def make_contact(phone: Any = None, agent_name: Any = None, email: Any = None) -> Optional[ContactInfo]:
    if not (is_present(phone) or is_present(agent_name) or is_present(email)):
        return None
    return ContactInfo(
        phone=str(phone) if is_present(phone) else None,
        agent_name=str(agent_name) if is_present(agent_name) else None,
        email=str(email) if is_present(email) else None,
    )


_NATURAL_ID_KEYS = ("id", "zpid", "ZPID", "URL")


def natural_id(record: RawRecord, ctx: NormalizeContext) -> str:
    for name in _NATURAL_ID_KEYS:
        value = record.get(name)
        if is_present(value):
            return str(value)
    return ctx.synthetic_id()


def record_status(record: RawRecord) -> str:
    return as_text(first_present(record, (key("homeStatus"), key("HomeStatus"), key("status"))))


def record_contact(record: RawRecord) -> Optional[ContactInfo]:
    phone = record.get("contactPhone")
    broker = record.get("brokerName")
    if is_present(phone) or is_present(broker):
        return make_contact(phone=phone, agent_name=broker)
    contact = record.get("contact")
    if isinstance(contact, dict):
        return make_contact(phone=contact.get("phone"), email=contact.get("email"), agent_name=contact.get("name"))
    return None


def record_scraped_at(record: RawRecord, ctx: NormalizeContext) -> str:
    return as_text(first_present(record, (key("scrapedAt"), key("datetime"))), default=ctx.scraped_at)


def scalar_key(*path: Any) -> Extractor:
    """Like ``key`` but ignores nested objects and lists."""

    def _extract(record: RawRecord) -> Any:
        value = dig(record, *path)
        return value if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None

    return _extract
