from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_aggregate, render_aggregates

_DATE_FORMATS = ["%Y-%m-%d"]
_TIMESTAMP_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Record device readings and query daily aggregates.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Aggregates API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("record")
def record_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identifier of the reporting device."),
    energy: float = typer.Option(..., "--energy", "-e", help="Active energy reading."),
    power: float = typer.Option(..., "--power", "-p", help="Active power reading."),
    timestamp: Optional[datetime] = typer.Option(
        None,
        "--timestamp",
        "-t",
        formats=_TIMESTAMP_FORMATS,
        help="When the reading was taken, UTC (defaults to now).",
    ),
) -> None:
    """Merge one reading into its daily aggregate."""
    state = _get_state(ctx)
    taken_at = timestamp or datetime.now(timezone.utc)
    payload = state.client.record_reading(device_id, taken_at, energy, power)
    typer.secho(f"Reading recorded for {device_id}.", fg=typer.colors.GREEN)
    render_aggregate(payload)


@app.command("query")
def query_command(
    ctx: typer.Context,
    devices: List[str] = typer.Option(
        ..., "--device", "-d", help="Device identifier; repeat for several devices."
    ),
    start: datetime = typer.Option(
        ..., "--start", formats=_DATE_FORMATS, help="First day of the range (inclusive)."
    ),
    end: datetime = typer.Option(
        ..., "--end", formats=_DATE_FORMATS, help="Last day of the range (inclusive)."
    ),
) -> None:
    """List daily aggregates for devices between two dates."""
    state = _get_state(ctx)
    if start > end:
        raise typer.BadParameter("--start must not be after --end.")
    payloads = state.client.query_range(devices, start.date(), end.date())
    render_aggregates(payloads)
