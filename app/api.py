"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import DailyAggregate, RecordReadingRequest
from services.aggregator import DailyAggregator, build_default_aggregator
from services.errors import InvalidInput, StoreUnavailable

router = APIRouter()


def get_aggregator() -> DailyAggregator:
    return build_default_aggregator()


@router.post(
    "/aggregates/daily",
    response_model=DailyAggregate,
    summary="Merge a device reading into its daily aggregate.",
)
def record_reading(
    payload: RecordReadingRequest,
    aggregator: DailyAggregator = Depends(get_aggregator),
) -> DailyAggregate:
    try:
        return aggregator.record_reading(
            payload.device_id,
            payload.timestamp,
            payload.active_energy,
            payload.active_power,
        )
    except InvalidInput as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/aggregates/daily",
    response_model=List[DailyAggregate],
    summary="List daily aggregates for devices within an inclusive date range.",
)
def query_range(
    device_id: List[str] = Query(..., description="Device identifiers to include."),
    start: date = Query(..., description="First day of the range (inclusive)."),
    end: date = Query(..., description="Last day of the range (inclusive)."),
    aggregator: DailyAggregator = Depends(get_aggregator),
) -> List[DailyAggregate]:
    try:
        return aggregator.query_range(device_id, start, end)
    except InvalidInput as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
