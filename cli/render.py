from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

import typer

_AGGREGATE_FIELDS = (
    "device_id",
    "timestamp",
    "active_energy",
    "active_power",
    "active_energy_avg",
    "active_power_avg",
    "aggregate_count",
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_aggregate(payload: Dict[str, Any]) -> None:
    echo_heading("Daily Aggregate")
    echo_key_values((key, payload.get(key)) for key in ("id",) + _AGGREGATE_FIELDS)


def render_aggregates(payloads: Sequence[Dict[str, Any]]) -> None:
    echo_heading(f"Daily Aggregates ({len(payloads)})")
    if not payloads:
        typer.echo("No aggregates found.")
        return
    for payload in payloads:
        typer.echo(
            "  - {device_id} {timestamp}: energy={active_energy} power={active_power} "
            "energy_avg={active_energy_avg} power_avg={active_power_avg} "
            "count={aggregate_count}".format(
                **{key: payload.get(key) for key in _AGGREGATE_FIELDS}
            )
        )
