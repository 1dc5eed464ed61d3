"""Per-device, per-day aggregation of energy and power readings."""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from datetime import date, datetime, timezone, tzinfo
from functools import lru_cache
from typing import Any, Iterable, Iterator, List, Optional
from zoneinfo import ZoneInfo

from app.schemas import DailyAggregate
from datastore.base import AggregateStore
from datastore.mock_dynamodb import build_default_table
from models.records import Reading
from services.errors import InvalidInput, StoreUnavailable
from settings import AVERAGE_MODES, get_settings

logger = logging.getLogger(__name__)

PAIRWISE_DIVISOR = 2


def bucket_day(timestamp: datetime | date, tz: tzinfo = timezone.utc) -> date:
    """Reduce ``timestamp`` to the calendar day it falls on in ``tz``.

    Naive datetimes are taken to be UTC. Plain dates are already day keys.
    """
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(tz).date()
    if isinstance(timestamp, date):
        return timestamp
    raise InvalidInput(f"Timestamp must be a date or datetime, got {type(timestamp).__name__}.")


def _require_device_id(device_id: Any) -> str:
    if not isinstance(device_id, str) or not device_id.strip():
        raise InvalidInput("device_id must be a non-empty string.")
    return device_id


def _require_finite(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{name} must be a number.")
    try:
        value = float(value)
    except OverflowError as exc:
        raise InvalidInput(f"{name} is too large to represent as a float.") from exc
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value!r}.")
    return value


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except StoreUnavailable:
        logger.warning("Aggregate store failed during %s", operation, extra={"reason": "store"})
        raise
    except OSError as exc:
        logger.warning(
            "Aggregate store unreachable during %s", operation, extra={"reason": str(exc)}
        )
        raise StoreUnavailable(f"Aggregate store unreachable during {operation}.") from exc


def _expect_aggregate(result: Any, operation: str) -> DailyAggregate:
    if not isinstance(result, DailyAggregate):
        raise StoreUnavailable(f"Aggregate store returned a malformed result for {operation}.")
    return result


class DailyAggregator:
    """Maintains one aggregate bucket per device and calendar day."""

    def __init__(
        self,
        store: AggregateStore,
        tz: tzinfo = timezone.utc,
        average_mode: str = "pairwise",
    ) -> None:
        if average_mode not in AVERAGE_MODES:
            raise ValueError(f"Unknown average mode {average_mode!r}.")
        self.store = store
        self.tz = tz
        self.average_mode = average_mode

    def record_reading(
        self,
        device_id: str,
        timestamp: datetime | date,
        energy_value: float,
        power_value: float,
    ) -> DailyAggregate:
        """Merge a reading into its daily bucket, creating the bucket if needed."""
        device_id = _require_device_id(device_id)
        energy_value = _require_finite("energy_value", energy_value)
        power_value = _require_finite("power_value", power_value)
        day = bucket_day(timestamp, self.tz)

        with self.store.lock_key(device_id, day):
            with _store_errors("lookup"):
                existing = self.store.find_one(device_id, day)

            if existing is None:
                with _store_errors("insert"):
                    created = self.store.insert(
                        {
                            "device_id": device_id,
                            "timestamp": day,
                            "active_energy": energy_value,
                            "active_power": power_value,
                        }
                    )
                created = _expect_aggregate(created, "insert")
                logger.debug(
                    "Created daily bucket",
                    extra={"device_id": device_id, "bucket_day": day, "aggregate_count": 1},
                )
                return created

            existing = _expect_aggregate(existing, "lookup")
            new_energy = existing.active_energy + energy_value
            new_power = existing.active_power + power_value
            new_count = existing.aggregate_count + 1
            if not (math.isfinite(new_energy) and math.isfinite(new_power)):
                raise InvalidInput(
                    f"Merging this reading would overflow the totals for {device_id!r} on {day}."
                )
            divisor = self._divisor(new_count)
            try:
                with _store_errors("update"):
                    updated = self.store.update_by_id(
                        existing.id,
                        {
                            "active_energy": new_energy,
                            "active_power": new_power,
                            "aggregate_count": new_count,
                            "active_energy_avg": new_energy / divisor,
                            "active_power_avg": new_power / divisor,
                        },
                    )
            except KeyError as exc:
                raise StoreUnavailable(
                    f"Aggregate {existing.id!r} disappeared before it could be updated."
                ) from exc
            updated = _expect_aggregate(updated, "update")

        logger.debug(
            "Merged reading into daily bucket",
            extra={"device_id": device_id, "bucket_day": day, "aggregate_count": new_count},
        )
        return updated

    def record_readings(self, readings: Iterable[Reading]) -> List[DailyAggregate]:
        return [
            self.record_reading(
                reading.device_id,
                reading.timestamp,
                reading.active_energy,
                reading.active_power,
            )
            for reading in readings
        ]

    def query_range(
        self,
        device_ids: Iterable[str],
        start_date: datetime | date,
        end_date: datetime | date,
    ) -> List[DailyAggregate]:
        """Return buckets for ``device_ids`` with ``start_date <= day <= end_date``."""
        if isinstance(device_ids, str):
            device_ids = [device_ids]
        wanted = frozenset(device_ids)
        if not wanted:
            raise InvalidInput("At least one device_id is required.")
        for device_id in wanted:
            _require_device_id(device_id)
        start = bucket_day(start_date, self.tz)
        end = bucket_day(end_date, self.tz)
        if start > end:
            raise InvalidInput(f"start_date {start} is after end_date {end}.")

        with _store_errors("range query"):
            results = self.store.find_many(wanted, start, end)
        if not isinstance(results, list):
            raise StoreUnavailable("Aggregate store returned a malformed range result.")
        for result in results:
            _expect_aggregate(result, "range query")

        logger.debug(
            "Range query complete",
            extra={"device_count": len(wanted), "result_count": len(results)},
        )
        return results

    def _divisor(self, count: int) -> int:
        if self.average_mode == "running":
            return count
        return PAIRWISE_DIVISOR


@lru_cache
def build_default_aggregator(average_mode: Optional[str] = None) -> DailyAggregator:
    """Factory that wires the aggregator to the default table."""
    settings = get_settings()
    return DailyAggregator(
        store=build_default_table(),
        tz=ZoneInfo(settings.bucket_timezone),
        average_mode=average_mode or settings.average_mode,
    )
