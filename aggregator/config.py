from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from telemetry.logging_utils import get_logger

from .errors import ConfigurationError

load_dotenv()
logger = get_logger(__name__)

DEFAULT_MCP_SERVER_URL = "https://lucastirbat--property-search-mcp-server.apify.actor"
DEFAULT_INVOKE_TIMEOUT_SECONDS = 600.0
DEFAULT_POLL_INTERVAL_SECONDS = 15.0
# 9 minutes keeps polling under the 10 minute outer timeout.
DEFAULT_MAX_POLL_DURATION_SECONDS = 9 * 60.0
DEFAULT_DATASET_LIMIT = 100
DEFAULT_STATUS_RETRIES = 3
DEFAULT_SEARCH_TIMEOUT_SECONDS = 600.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("invalid_config_value", extra={"variable": name, "value": raw, "default": default})
        return default
    if value <= 0:
        logger.warning("invalid_config_value", extra={"variable": name, "value": raw, "default": default})
        return default
    return value


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


def get_apify_token() -> Optional[str]:
    token = os.getenv("APIFY_TOKEN") or os.getenv("APIFY_API_TOKEN")
    return token.strip() if token and token.strip() else None


@dataclass(frozen=True)
class PipelineSettings:
    """Everything one pipeline run needs besides the tool name and input."""

    apify_token: Optional[str] = None
    mcp_server_url: str = DEFAULT_MCP_SERVER_URL
    invoke_timeout: float = DEFAULT_INVOKE_TIMEOUT_SECONDS
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_poll_duration: float = DEFAULT_MAX_POLL_DURATION_SECONDS
    dataset_limit: int = DEFAULT_DATASET_LIMIT
    status_retries: int = DEFAULT_STATUS_RETRIES
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            apify_token=get_apify_token(),
            mcp_server_url=(os.getenv("MCP_SERVER_URL") or DEFAULT_MCP_SERVER_URL).rstrip("/"),
            invoke_timeout=_env_float("MCP_INVOKE_TIMEOUT", DEFAULT_INVOKE_TIMEOUT_SECONDS),
            poll_interval=_env_float("APIFY_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            max_poll_duration=_env_float("APIFY_MAX_POLL_DURATION", DEFAULT_MAX_POLL_DURATION_SECONDS),
            dataset_limit=_env_int("APIFY_DATASET_LIMIT", DEFAULT_DATASET_LIMIT),
            status_retries=_env_int("APIFY_STATUS_RETRIES", DEFAULT_STATUS_RETRIES),
            search_timeout=_env_float("SEARCH_TIMEOUT", DEFAULT_SEARCH_TIMEOUT_SECONDS),
        )

    def with_token(self, token: Optional[str]) -> "PipelineSettings":
        if not token:
            return self
        return replace(self, apify_token=token)

    def require_token(self) -> str:
        if not self.apify_token:
            raise ConfigurationError("APIFY_TOKEN (or APIFY_API_TOKEN) is required to run property searches.")
        return self.apify_token
