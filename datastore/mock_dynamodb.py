from __future__ import annotations
import json
from contextlib import contextmanager
from datetime import date
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple
from uuid import uuid4

from app.schemas import DailyAggregate
from services.errors import StoreUnavailable
from settings import get_settings

BucketKey = Tuple[str, date]

INSERT_FIELDS = frozenset({"device_id", "timestamp", "active_energy", "active_power"})
UPDATE_FIELDS = frozenset(
    {
        "active_energy",
        "active_power",
        "aggregate_count",
        "active_energy_avg",
        "active_power_avg",
    }
)


class MockAggregateTable:
    """In-memory aggregate table keyed by id with a unique (device, day) index."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[str, DailyAggregate] = {}
        self._index: Dict[BucketKey, str] = {}
        self._key_locks: Dict[BucketKey, Lock] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def find_one(self, device_id: str, timestamp: date) -> Optional[DailyAggregate]:
        with self._lock:
            item_id = self._index.get((device_id, timestamp))
            if item_id is None:
                return None
            return self._items[item_id].model_copy(deep=True)

    def insert(self, fields: Mapping[str, Any]) -> DailyAggregate:
        unknown = set(fields) - INSERT_FIELDS
        if unknown:
            raise ValueError(f"Unsupported insert fields: {', '.join(sorted(unknown))}")

        # Averages of a single reading are the reading itself.
        item = DailyAggregate(
            id=str(uuid4()),
            device_id=fields["device_id"],
            timestamp=fields["timestamp"],
            active_energy=fields["active_energy"],
            active_power=fields["active_power"],
            active_energy_avg=fields["active_energy"],
            active_power_avg=fields["active_power"],
            aggregate_count=1,
        )
        key = (item.device_id, item.timestamp)
        with self._lock:
            if key in self._index:
                raise ValueError(
                    f"Aggregate for device {item.device_id!r} on {item.timestamp} already exists."
                )
            self._items[item.id] = item
            self._index[key] = item.id
            try:
                self._persist()
            except StoreUnavailable:
                del self._items[item.id]
                del self._index[key]
                raise
            return item.model_copy(deep=True)

    def update_by_id(self, item_id: str, fields: Mapping[str, Any]) -> DailyAggregate:
        unknown = set(fields) - UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported update fields: {', '.join(sorted(unknown))}")

        with self._lock:
            current = self._items.get(item_id)
            if current is None:
                raise KeyError(f"Aggregate {item_id!r} not found in table {self.name!r}.")
            updated = DailyAggregate.model_validate({**current.model_dump(), **fields})
            self._items[item_id] = updated
            try:
                self._persist()
            except StoreUnavailable:
                self._items[item_id] = current
                raise
            return updated.model_copy(deep=True)

    def find_many(
        self, device_ids: Iterable[str], start_date: date, end_date: date
    ) -> list[DailyAggregate]:
        """Return copies of buckets for ``device_ids`` within the inclusive range."""

        wanted = frozenset(device_ids)
        with self._lock:
            return [
                item.model_copy(deep=True)
                for item in self._items.values()
                if item.device_id in wanted and start_date <= item.timestamp <= end_date
            ]

    def scan(self) -> list[DailyAggregate]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    @contextmanager
    def lock_key(self, device_id: str, timestamp: date) -> Iterator[None]:
        """Serialize read-modify-write sequences on a single bucket."""

        # One lock per bucket key, never pruned; grows with the item table.
        with self._lock:
            key_lock = self._key_locks.setdefault((device_id, timestamp), Lock())
        with key_lock:
            yield

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [item.model_dump(mode="json") for item in self._items.values()]
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise StoreUnavailable(
                f"Could not persist table {self.name!r} to {self.persistence_path}."
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = []
        if not isinstance(data, list):
            data = []

        for payload in data:
            item = DailyAggregate.model_validate(payload)
            self._items[item.id] = item
            self._index[(item.device_id, item.timestamp)] = item.id


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockAggregateTable:
    settings = get_settings()
    table_name = settings.table_name if name is None else name
    table_path = settings.table_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return MockAggregateTable(name=table_name, persistence_path=persistence)
