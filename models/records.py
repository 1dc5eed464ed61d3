"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Union


@dataclass(slots=True)
class Reading:
    """A single energy/power sample reported by a device."""

    device_id: str
    timestamp: Union[datetime, date]
    active_energy: float
    active_power: float
