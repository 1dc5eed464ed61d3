from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Sequence

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the aggregates service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def record_reading(
        self,
        device_id: str,
        timestamp: datetime,
        active_energy: float,
        active_power: float,
    ) -> Dict[str, Any]:
        try:
            response = self._client.post(
                "/aggregates/daily",
                json={
                    "device_id": device_id,
                    "timestamp": timestamp.isoformat(),
                    "active_energy": active_energy,
                    "active_power": active_power,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        return response.json()

    def query_range(
        self, device_ids: Sequence[str], start: date, end: date
    ) -> List[Dict[str, Any]]:
        params = [("device_id", device_id) for device_id in device_ids]
        params.extend([("start", start.isoformat()), ("end", end.isoformat())])
        try:
            response = self._client.get("/aggregates/daily", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        payload = response.json()
        if not isinstance(payload, list):
            raise typer.BadParameter("Unexpected response payload when querying aggregates.")
        return payload

    def _handle_transport_error(self, exc: httpx.TransportError) -> None:
        typer.secho(
            f"Could not reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
