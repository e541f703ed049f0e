from .config import PipelineSettings
from .dedupe import dedupe
from .errors import (
    AggregatorError,
    ConfigurationError,
    InvokeTimeoutError,
    ParseError,
    PollTimeoutError,
    ProtocolError,
    RunFailedError,
    TransportError,
)
from .models import ContactInfo, Coordinates, JobHandle, RunStatus, UnifiedProperty
from .normalizers import normalize
from .pipeline import search, search_many, search_sync
from .ranking import rank_properties
from .tools import TOOL_DEFINITIONS, TOOL_NAME_MAP, resolve_tool_name

__all__ = [
    "AggregatorError",
    "ConfigurationError",
    "ContactInfo",
    "Coordinates",
    "InvokeTimeoutError",
    "JobHandle",
    "ParseError",
    "PipelineSettings",
    "PollTimeoutError",
    "ProtocolError",
    "RunFailedError",
    "RunStatus",
    "TOOL_DEFINITIONS",
    "TOOL_NAME_MAP",
    "TransportError",
    "UnifiedProperty",
    "dedupe",
    "normalize",
    "rank_properties",
    "resolve_tool_name",
    "search",
    "search_many",
    "search_sync",
]
