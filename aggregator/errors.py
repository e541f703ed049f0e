"""Failure taxonomy for the aggregation pipeline."""

from __future__ import annotations

from typing import Optional


class AggregatorError(RuntimeError):
    """Base class for every pipeline failure."""


class ConfigurationError(AggregatorError):
    """Required configuration (the Apify token) is missing."""


class TransportError(AggregatorError):
    """A connection or HTTP call failed."""


class InvokeTimeoutError(TransportError, TimeoutError):
    """The MCP server did not produce a job handle in time."""


class ProtocolError(AggregatorError):
    """The remote side sent something we cannot use."""


class RunFailedError(AggregatorError):
    """An actor run ended in FAILED, TIMED_OUT or ABORTED."""

    def __init__(self, run_id: str, status: Optional[str]) -> None:
        super().__init__(f"Actor run {run_id} did not succeed (status {status}).")
        self.run_id = run_id
        self.status = status


class PollTimeoutError(AggregatorError, TimeoutError):
    """An actor run was still running when the polling budget ran out."""


class ParseError(AggregatorError, ValueError):
    """A nested JSON text blob could not be decoded."""
