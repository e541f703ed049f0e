"""Searchable actors: caller-facing names, backend names and input schemas."""

from __future__ import annotations

from typing import Any, Dict, List

# Callers (and the chat layer) use underscore names; the MCP server exposes "-slash-" names.
TOOL_NAME_MAP: Dict[str, str] = {
    "jupri_zillow_scraper": "jupri-slash-zillow-scraper",
    "epctex_apartments_scraper": "epctex-slash-apartments-scraper",
    "epctex_realtor_scraper": "epctex-slash-realtor-scraper",
    "epctex_apartmentlist_scraper": "epctex-slash-apartmentlist-scraper",
}


def resolve_tool_name(tool_name: str) -> str:
    """Map a caller-facing tool name to the backend name; unknown names pass through."""
    return TOOL_NAME_MAP.get(tool_name, tool_name)


_LOCATION_SEARCH_PROPERTIES: Dict[str, Any] = {
    "location": {"type": "string", "description": 'City, State, or ZIP Code (e.g., "Austin, TX")'},
    "maxPrice": {"type": "number", "description": "Max rent price (e.g., 3000)"},
    "bedrooms": {"type": "number", "description": "Number of bedrooms (e.g., 2)"},
}

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "jupri-slash-zillow-scraper",
        "description": (
            'Search Zillow for rentals. Put every criterion (location, price, bedrooms) in a detailed "prompt". '
            '"search_type" must be "rent"; "limit" is optional.'
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Natural language search (e.g., \"2 bedroom apartments for rent in San Francisco under $3500\") or a Zillow search URL.",
                },
                "search_type": {"type": "string", "enum": ["rent"], "description": 'Must be "rent".'},
                "limit": {"type": "integer", "description": "Number of results (1-1000)."},
            },
            "required": ["prompt", "search_type"],
        },
    },
    {
        "name": "epctex-slash-apartments-scraper",
        "description": "Search Apartments.com listings. Accepts Apartments.com search URLs.",
        "input_schema": {
            "type": "object",
            "properties": {
                "startUrls": {"type": "array", "items": {"type": "string"}, "description": "Apartments.com search URLs."},
                "maxItems": {"type": "integer", "description": "Maximum number of listings."},
            },
            "required": ["startUrls"],
        },
    },
    {
        "name": "epctex-slash-realtor-scraper",
        "description": "Search Realtor.com rentals. Sold, pending and off-market homes are filtered out.",
        "input_schema": {
            "type": "object",
            "properties": {
                "search": {"type": "string", "description": 'Location to search (e.g., "Austin, TX").'},
                "mode": {"type": "string", "enum": ["RENT", "BUY"], "description": "Listing mode."},
                "maxItems": {"type": "integer", "description": "Maximum number of listings."},
            },
            "required": ["search"],
        },
    },
    {
        "name": "epctex-slash-apartmentlist-scraper",
        "description": "Search ApartmentList. Each building is expanded into one listing per available unit.",
        "input_schema": {
            "type": "object",
            "properties": {
                "startUrls": {"type": "array", "items": {"type": "string"}, "description": "ApartmentList search URLs."},
                "maxItems": {"type": "integer", "description": "Maximum number of buildings."},
            },
            "required": ["startUrls"],
        },
    },
    {
        "name": "epctex-slash-redfin-scraper",
        "description": "Search for rental properties on Redfin.",
        "input_schema": {
            "type": "object",
            "properties": {
                **_LOCATION_SEARCH_PROPERTIES,
                "propertyType": {
                    "type": "string",
                    "enum": ["apartment", "house", "condo", "townhouse", "any"],
                    "description": "Property type.",
                },
                "query": {"type": "string", "description": 'General query (e.g., "apartments in Austin TX under $2000").'},
            },
            "required": ["location"],
        },
    },
    {
        "name": "ivanvs-slash-craigslist-scraper",
        "description": "Search Craigslist for rentals.",
        "input_schema": {
            "type": "object",
            "properties": {
                **_LOCATION_SEARCH_PROPERTIES,
                "location": {"type": "string", "description": 'Craigslist city/subdomain (e.g., "sfbay").'},
                "query": {"type": "string", "description": 'Search query (e.g., "2 bedroom downtown no fee").'},
            },
            "required": ["location", "query"],
        },
    },
]
