from __future__ import annotations

from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from aggregator import (
    TOOL_DEFINITIONS,
    TOOL_NAME_MAP,
    ConfigurationError,
    PipelineSettings,
    UnifiedProperty,
    rank_properties,
    search,
    search_many,
)
from telemetry.logging_utils import get_logger
from telemetry.metrics import fetch_metrics, summarize_metrics

load_dotenv()
logger = get_logger(__name__)


class McpSearchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_name: Optional[str] = Field(default=None, alias="toolName")
    tool_input: Optional[Dict[str, Any]] = Field(default=None, alias="toolInput")
    max_price: Optional[float] = Field(default=None, alias="maxPrice")
    bedrooms: Optional[int] = None


class MultiSearchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    searches: List[McpSearchPayload] = Field(default_factory=list)
    max_price: Optional[float] = Field(default=None, alias="maxPrice")
    bedrooms: Optional[int] = None


app = FastAPI(title="Property Whisperer")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_search(payload: McpSearchPayload) -> None:
    if not payload.tool_name or "tool_input" not in payload.model_fields_set:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing toolName or toolInput for MCP search.",
        )


def _settings() -> PipelineSettings:
    settings = PipelineSettings.from_env()
    if not settings.apify_token:
        logger.error("apify_token_missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error: APIFY_TOKEN is not set.",
        )
    return settings


def _properties_response(
    properties: List[UnifiedProperty],
    max_price: Optional[float],
    bedrooms: Optional[int],
) -> Dict[str, Any]:
    if max_price or bedrooms:
        properties = rank_properties(properties, max_price=max_price, bedrooms=bedrooms)
    return {"properties": [prop.to_public_dict() for prop in properties]}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/tools")
def list_tools():
    return {"tools": TOOL_DEFINITIONS, "aliases": TOOL_NAME_MAP}


@app.post("/api/properties/mcp-search")
async def mcp_search(payload: McpSearchPayload):
    _require_search(payload)
    settings = _settings()
    logger.info("mcp_search_request", extra={"tool": payload.tool_name})
    try:
        properties = await search(payload.tool_name, payload.tool_input or {}, settings=settings)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return _properties_response(properties, payload.max_price, payload.bedrooms)


@app.post("/api/properties/multi-search")
async def multi_search(payload: MultiSearchPayload):
    if not payload.searches:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No searches provided.")
    for item in payload.searches:
        _require_search(item)
    settings = _settings()
    logger.info("multi_search_request", extra={"tools": [item.tool_name for item in payload.searches]})
    try:
        properties = await search_many(
            [(item.tool_name, item.tool_input or {}) for item in payload.searches],
            settings=settings,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return _properties_response(properties, payload.max_price, payload.bedrooms)


@app.get("/api/metrics")
def metrics_summary(limit: int = 500):
    return summarize_metrics(fetch_metrics(limit=limit))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.app:app", host="0.0.0.0", port=8000, reload=False)
