"""Error taxonomy raised by the daily aggregation core."""

from __future__ import annotations


class AggregationError(Exception):
    """Base class for aggregation failures surfaced to callers."""


class InvalidInput(AggregationError, ValueError):
    """Caller supplied data that violates a precondition."""


class StoreUnavailable(AggregationError, RuntimeError):
    """The aggregate store failed or returned a malformed result."""
