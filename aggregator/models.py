from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

NOT_AVAILABLE = "N/A"


class RunStatus(str, Enum):
    """Apify actor run states."""
    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMING_OUT = "TIMING-OUT"
    TIMED_OUT = "TIMED-OUT"
    ABORTING = "ABORTING"
    ABORTED = "ABORTED"

    @classmethod
    def parse(cls, raw: Any) -> Optional["RunStatus"]:
        if raw is None:
            return None
        text = str(raw).strip().upper().replace("_", "-")
        try:
            return cls(text)
        except ValueError:
            return None

    @property
    def is_failure(self) -> bool:
        return self in FAILED_RUN_STATUSES


FAILED_RUN_STATUSES = frozenset({RunStatus.FAILED, RunStatus.TIMED_OUT, RunStatus.ABORTED})


@dataclass(frozen=True)
class JobInvocation:
    tool_name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobHandle:
    run_id: Optional[str] = None
    dataset_id: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.run_id or self.dataset_id)


def _ordered_unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ContactInfo(_CamelModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    agent_name: Optional[str] = None


class Coordinates(_CamelModel):
    lat: float
    lng: float


class UnifiedProperty(_CamelModel):
    """Canonical listing shape every scraper output is normalized into."""

    id: str
    source: str
    title: str
    price: str = NOT_AVAILABLE
    price_numeric: float = Field(default=0.0, ge=0)
    location: str = NOT_AVAILABLE
    address: str = NOT_AVAILABLE
    city: str = NOT_AVAILABLE
    state: str = NOT_AVAILABLE
    zip_code: str = ""
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: float = Field(default=0.0, ge=0)
    area: str = NOT_AVAILABLE
    area_numeric: float = Field(default=0.0, ge=0)
    images: List[str] = Field(default_factory=list)
    description: str = ""
    url: str = "#"
    property_type: str = NOT_AVAILABLE
    home_status: str = NOT_AVAILABLE
    scraped_at: str
    features: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    contact_info: Optional[ContactInfo] = None
    coordinates: Optional[Coordinates] = None
    availability: Optional[str] = None
    pet_policy: Optional[str] = None

    @field_validator("images")
    @classmethod
    def _http_images_only(cls, value: List[str]) -> List[str]:
        return _ordered_unique(u for u in value if u.startswith("http"))

    @field_validator("features", "amenities")
    @classmethod
    def _unique_strings(cls, value: List[str]) -> List[str]:
        return _ordered_unique(value)

    @property
    def is_valid(self) -> bool:
        title = (self.title or "").strip()
        return self.price_numeric > 0 and bool(title) and title != NOT_AVAILABLE

    def to_public_dict(self) -> Dict[str, Any]:
        """camelCase JSON view used by the web front-end."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
