"""Unit tests for the in-memory aggregate table."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from datastore.mock_dynamodb import MockAggregateTable
from services.errors import StoreUnavailable

DAY = date(2024, 1, 1)


def _insert(table: MockAggregateTable, device_id: str = "device1", day: date = DAY):
    return table.insert(
        {"device_id": device_id, "timestamp": day, "active_energy": 10.0, "active_power": 4.0}
    )


def test_insert_assigns_id_and_store_defaults() -> None:
    table = MockAggregateTable(name="aggregates")

    created = _insert(table)

    assert created.id
    assert created.aggregate_count == 1
    assert created.active_energy_avg == 10.0
    assert created.active_power_avg == 4.0
    assert table.find_one("device1", DAY) == created


def test_insert_rejects_duplicate_bucket_key() -> None:
    table = MockAggregateTable(name="aggregates")
    _insert(table)

    with pytest.raises(ValueError):
        _insert(table)


def test_insert_rejects_unknown_fields() -> None:
    table = MockAggregateTable(name="aggregates")

    with pytest.raises(ValueError):
        table.insert(
            {
                "device_id": "device1",
                "timestamp": DAY,
                "active_energy": 1.0,
                "active_power": 1.0,
                "aggregate_count": 7,
            }
        )


def test_find_one_returns_none_when_missing() -> None:
    table = MockAggregateTable(name="aggregates")

    assert table.find_one("device1", DAY) is None


def test_find_one_returns_deep_copy() -> None:
    table = MockAggregateTable(name="aggregates")
    _insert(table)

    fetched = table.find_one("device1", DAY)
    assert fetched is not None
    fetched.active_energy = 999.0

    again = table.find_one("device1", DAY)
    assert again is not None
    assert again.active_energy == 10.0


def test_update_by_id_applies_fields() -> None:
    table = MockAggregateTable(name="aggregates")
    created = _insert(table)

    updated = table.update_by_id(
        created.id,
        {
            "active_energy": 30.0,
            "active_power": 8.0,
            "aggregate_count": 2,
            "active_energy_avg": 15.0,
            "active_power_avg": 4.0,
        },
    )

    assert updated.id == created.id
    assert updated.aggregate_count == 2
    assert table.find_one("device1", DAY) == updated


def test_update_by_id_missing_raises_key_error() -> None:
    table = MockAggregateTable(name="aggregates")

    with pytest.raises(KeyError):
        table.update_by_id("missing", {"aggregate_count": 2})


def test_update_by_id_rejects_key_fields() -> None:
    table = MockAggregateTable(name="aggregates")
    created = _insert(table)

    with pytest.raises(ValueError):
        table.update_by_id(created.id, {"device_id": "other"})


def test_find_many_keeps_insertion_order() -> None:
    table = MockAggregateTable(name="aggregates")
    _insert(table, "device2", date(2024, 1, 2))
    _insert(table, "device1", date(2024, 1, 1))
    _insert(table, "device1", date(2024, 1, 5))

    found = table.find_many({"device1", "device2"}, date(2024, 1, 1), date(2024, 1, 2))

    assert [(item.device_id, item.timestamp) for item in found] == [
        ("device2", date(2024, 1, 2)),
        ("device1", date(2024, 1, 1)),
    ]


def test_lock_key_reuses_one_lock_per_bucket() -> None:
    table = MockAggregateTable(name="aggregates")

    for _ in range(3):
        with table.lock_key("device1", DAY):
            pass
    with table.lock_key("device2", DAY):
        pass

    assert set(table._key_locks) == {("device1", DAY), ("device2", DAY)}


def test_persists_to_disk_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "aggregates.json"
    table = MockAggregateTable(name="aggregates", persistence_path=path)
    created = _insert(table)

    payload = json.loads(path.read_text())
    assert payload[0]["id"] == created.id
    assert payload[0]["timestamp"] == "2024-01-01"

    reloaded = MockAggregateTable(name="aggregates", persistence_path=path)
    assert reloaded.find_one("device1", DAY) == created
    with pytest.raises(ValueError):
        _insert(reloaded)


def test_corrupt_file_starts_empty(tmp_path: Path) -> None:
    path = tmp_path / "aggregates.json"
    path.write_text("{not json")

    table = MockAggregateTable(name="aggregates", persistence_path=path)

    assert table.scan() == []


def test_persist_failure_raises_store_unavailable_and_rolls_back(tmp_path: Path) -> None:
    path = tmp_path / "aggregates.json"
    table = MockAggregateTable(name="aggregates", persistence_path=path)
    path.mkdir()

    with pytest.raises(StoreUnavailable):
        _insert(table)

    assert table.find_one("device1", DAY) is None
