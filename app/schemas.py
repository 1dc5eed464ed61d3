"""Pydantic schemas for stored aggregates and the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class DailyAggregate(BaseModel):
    """One bucket of accumulated readings for a device on a calendar day."""

    model_config = ConfigDict(allow_inf_nan=False)

    id: str = Field(..., description="Identifier assigned by the store on insert.")
    device_id: str
    timestamp: date = Field(..., description="Calendar day the bucket represents.")
    active_energy: float
    active_power: float
    active_energy_avg: float
    active_power_avg: float
    aggregate_count: int = Field(default=1, ge=1)


class RecordReadingRequest(BaseModel):
    """Payload for submitting a single device reading."""

    device_id: str = Field(..., min_length=1)
    timestamp: datetime = Field(
        ..., description="Moment the reading was taken; bucketed by calendar day."
    )
    active_energy: float
    active_power: float
