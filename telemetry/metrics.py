from __future__ import annotations

import csv
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

METRICS_DIR = Path(os.getenv("METRICS_DIR", Path(__file__).resolve().parent.parent / "metrics"))
CSV_PATH = METRICS_DIR / "pipeline_log.csv"
CSV_COLUMNS = [
    "timestamp",
    "component",
    "tool",
    "latency_ms",
    "records",
    "outcome",
    "search_id",
]

_csv_lock = threading.Lock()
_supabase_client: Optional[Client] = None


def _get_supabase_client() -> Optional[Client]:
    """Lazily initialize a Supabase client when env vars are present."""
    global _supabase_client
    if _supabase_client is not None:
        return _supabase_client
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        return None
    try:
        _supabase_client = create_client(url, key)
    except Exception as exc:
        logger.warning("supabase_metrics_unavailable", extra={"error": str(exc)[:200]})
        _supabase_client = None
    return _supabase_client


def _ensure_csv_header() -> None:
    METRICS_DIR.mkdir(parents=True, exist_ok=True)
    if CSV_PATH.exists():
        return
    with _csv_lock:
        if CSV_PATH.exists():
            return
        with CSV_PATH.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
            writer.writeheader()


def _coerce_number(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def log_metric(
    component: str,
    tool: Optional[str],
    *,
    latency_ms: Optional[float] = None,
    records: Optional[int] = None,
    outcome: Optional[str] = None,
    search_id: Optional[str] = None,
) -> None:
    """Persist a metric row to CSV and Supabase (best effort)."""
    row = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "component": component,
        "tool": tool or "",
        "latency_ms": round(latency_ms, 3) if latency_ms is not None else None,
        "records": records,
        "outcome": outcome,
        "search_id": search_id,
    }
    csv_row = {k: ("" if v is None else v) for k, v in row.items()}

    try:
        _ensure_csv_header()
        with _csv_lock:
            with CSV_PATH.open("a", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
                writer.writerow(csv_row)
    except OSError as exc:
        # local metrics must never break a search
        logger.warning("metric_csv_write_failed", extra={"error": str(exc)[:200]})

    client = _get_supabase_client()
    if client is not None:
        try:
            client.table("metrics").insert(row).execute()
        except Exception as exc:
            logger.warning("metric_supabase_insert_failed", extra={"error": str(exc)[:200]})


@dataclass
class MetricTimer:
    component: str
    tool: Optional[str]
    search_id: Optional[str]
    records: Optional[int] = None
    outcome: str = "ok"
    _start: float = field(default_factory=time.perf_counter)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def done(self) -> None:
        log_metric(
            self.component,
            self.tool,
            latency_ms=self.elapsed_ms,
            records=self.records,
            outcome=self.outcome,
            search_id=self.search_id,
        )


def start_timer(component: str, tool: Optional[str], search_id: Optional[str] = None) -> MetricTimer:
    """Convenience helper to measure elapsed time + submit a metric."""
    return MetricTimer(component=component, tool=tool, search_id=search_id)


@contextmanager
def timed_operation(component: str, tool: Optional[str], search_id: Optional[str] = None):
    """Context manager wrapper to log latency for arbitrary operations.

    Callers may set ``timer.records`` and ``timer.outcome`` before the block exits.
    """
    timer = start_timer(component, tool, search_id)
    try:
        yield timer
    except BaseException:
        timer.outcome = "error"
        raise
    finally:
        timer.done()


def fetch_metrics(limit: int = 500) -> List[Dict[str, Any]]:
    """Return recent metrics from Supabase if available, otherwise from the local CSV."""
    client = _get_supabase_client()
    if client is not None:
        try:
            resp = client.table("metrics").select("*").order("timestamp", desc=True).limit(limit).execute()
            if resp.data:
                return resp.data
        except Exception as exc:
            logger.warning("metric_supabase_fetch_failed", extra={"error": str(exc)[:200]})
    if not CSV_PATH.exists():
        return []
    rows: List[Dict[str, Any]] = []
    with CSV_PATH.open("r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for idx, row in enumerate(reader):
            if idx >= limit:
                break
            rows.append(row)
    return rows


def summarize_metrics(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Compute average latency, record totals and failure counts per component."""
    latency_by_component: Dict[str, List[float]] = {}
    records_by_component: Dict[str, int] = {}
    failures_by_component: Dict[str, int] = {}
    for row in records:
        component = row.get("component") or "unknown"
        latency = _coerce_number(row.get("latency_ms"))
        if latency is not None:
            latency_by_component.setdefault(component, []).append(latency)
        count = _coerce_number(row.get("records"))
        if count:
            records_by_component[component] = records_by_component.get(component, 0) + int(count)
        if row.get("outcome") and row.get("outcome") != "ok":
            failures_by_component[component] = failures_by_component.get(component, 0) + 1
    avg_latency = {
        comp: round(sum(vals) / len(vals), 3) for comp, vals in latency_by_component.items() if vals
    }
    return {
        "average_latency_ms": avg_latency,
        "records": records_by_component,
        "failures": failures_by_component,
        "sample_size": len(records),
    }
