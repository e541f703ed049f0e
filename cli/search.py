"""
Run one property search from the terminal and save the normalized results.

    python -m cli.search --tool jupri_zillow_scraper \
        --input '{"prompt": "2 bedroom apartments in Austin under $2000", "search_type": "rent"}' \
        --csv-out results.csv
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from aggregator import TOOL_DEFINITIONS, ConfigurationError, UnifiedProperty, rank_properties, search_sync

DEFAULT_JSON_OUT = "properties.json"


def _parse_tool_input(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    path = Path(raw)
    text = path.read_text(encoding="utf-8") if path.suffix == ".json" and path.exists() else raw
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError("--input must be a JSON object")
    return value


def save_json(properties: List[UnifiedProperty], json_path: Path) -> None:
    payload = [prop.to_public_dict() for prop in properties]
    json_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"Saved {len(payload)} properties to {json_path}")


def save_csv(properties: List[UnifiedProperty], csv_path: Path) -> None:
    """Flatten nested fields (contactInfo.phone, coordinates.lat, ...) into columns."""
    rows = [prop.to_public_dict() for prop in properties]
    df = pd.json_normalize(rows) if rows else pd.DataFrame()
    for column in ("images", "features", "amenities"):
        if column in df.columns:
            df[column] = df[column].apply(lambda values: " | ".join(values) if isinstance(values, list) else values)
    df.to_csv(csv_path, index=False, encoding="utf-8-sig")
    print(f"Saved {len(rows)} properties to {csv_path}")


def _print_summary(properties: List[UnifiedProperty], limit: int = 10) -> None:
    print(f"Found {len(properties)} properties")
    for prop in properties[:limit]:
        print(f"  {prop.price:>10}  {prop.bedrooms}bd/{prop.bathrooms:g}ba  {prop.title}  ({prop.location})")
    if len(properties) > limit:
        print(f"  ... and {len(properties) - limit} more")


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search rental listings through the property MCP server.")
    parser.add_argument("--tool", "-t", help="Tool name, e.g. jupri_zillow_scraper or epctex-slash-realtor-scraper.")
    parser.add_argument("--input", "-i", help="Tool input as a JSON object, or a path to a .json file.")
    parser.add_argument("--json-out", default=DEFAULT_JSON_OUT, help="Where to write the normalized properties.")
    parser.add_argument("--csv-out", help="Optional CSV export path.")
    parser.add_argument("--max-price", type=float, help="Rank listings at or under this rent first.")
    parser.add_argument("--bedrooms", type=int, help="Rank listings with exactly this many bedrooms first.")
    parser.add_argument("--list-tools", action="store_true", help="Print the available tools and exit.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    if args.list_tools:
        for tool in TOOL_DEFINITIONS:
            print(f"{tool['name']}: {tool['description']}")
        return 0
    if not args.tool:
        print("--tool is required (use --list-tools to see the options).")
        return 2

    try:
        tool_input = _parse_tool_input(args.input)
    except ValueError as exc:
        print(f"Invalid --input: {exc}")
        return 2

    try:
        properties = search_sync(args.tool, tool_input)
    except ConfigurationError as exc:
        print(str(exc))
        return 1

    if args.max_price or args.bedrooms:
        properties = rank_properties(properties, max_price=args.max_price, bedrooms=args.bedrooms)

    _print_summary(properties)
    save_json(properties, Path(args.json_out))
    if args.csv_out:
        save_csv(properties, Path(args.csv_out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
