from __future__ import annotations

from datetime import date
from typing import Any, ContextManager, Iterable, Mapping, Optional, Protocol

from app.schemas import DailyAggregate


class AggregateStore(Protocol):
    """Persistence collaborator consumed by ``DailyAggregator``."""

    def find_one(self, device_id: str, timestamp: date) -> Optional[DailyAggregate]: ...

    def insert(self, fields: Mapping[str, Any]) -> DailyAggregate: ...

    def update_by_id(self, item_id: str, fields: Mapping[str, Any]) -> DailyAggregate: ...

    def find_many(
        self, device_ids: Iterable[str], start_date: date, end_date: date
    ) -> list[DailyAggregate]: ...

    def lock_key(self, device_id: str, timestamp: date) -> ContextManager[None]: ...
