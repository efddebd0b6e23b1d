"""Load-time normalization of stored trip documents.

Trips saved before the segment model carry a single ``trip_type`` and a flat
``fuel_cost`` and have no ``profit``. They are rewritten into the current
shape once, here, so nothing downstream has to know they ever existed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Mapping

from .models import ZERO, FuelEntry, FuelType, SegmentCategory, Trip, TripSegment, as_decimal, naive_local

logger = logging.getLogger(__name__)

LEGACY_ID = "legacy"
LEGACY_DUTY_START = "09:00"
LEGACY_DUTY_END = "21:00"


def normalize_trip(raw: Mapping[str, Any]) -> Trip:
    revenue = as_decimal(raw.get("revenue"))
    fuel_cost = as_decimal(raw.get("fuel_cost"))
    toll_other = as_decimal(raw.get("toll_other"))
    start_km = as_decimal(raw.get("start_km"))
    end_km = as_decimal(raw.get("end_km"))

    segments = raw.get("segments")
    if segments:
        parsed_segments = tuple(_segment_from_dict(item) for item in segments)
    else:
        total_km = as_decimal(raw.get("total_km", end_km - start_km))
        parsed_segments = (
            TripSegment(
                segment_id=LEGACY_ID,
                category=SegmentCategory.parse(raw.get("trip_type")),
                km=total_km,
                revenue=revenue,
            ),
        )

    fuel_entries = raw.get("fuel_entries")
    if fuel_entries:
        parsed_fuel = tuple(_fuel_from_dict(item) for item in fuel_entries)
    elif fuel_cost > 0:
        parsed_fuel = (FuelEntry(entry_id=LEGACY_ID, fuel_type=FuelType.CNG, quantity=ZERO, amount=fuel_cost),)
    else:
        parsed_fuel = ()

    if raw.get("profit") is None:
        profit = revenue - fuel_cost - toll_other
        logger.debug("Trip %s has no stored profit; using revenue less fuel and toll", raw.get("trip_id"))
    else:
        profit = as_decimal(raw["profit"])

    return Trip(
        trip_id=str(raw["trip_id"]),
        vehicle_id=str(raw.get("vehicle_id", "")),
        driver_id=str(raw.get("driver_id", "")),
        duty_start=_duty_time(raw, "duty_start", LEGACY_DUTY_START),
        duty_end=_duty_time(raw, "duty_end", LEGACY_DUTY_END),
        start_km=start_km,
        end_km=end_km,
        segments=parsed_segments,
        fuel_entries=parsed_fuel,
        toll_other=toll_other,
        revenue=revenue,
        fuel_cost=fuel_cost,
        driver_payout=as_decimal(raw.get("driver_payout")),
        profit=profit,
    )


def _duty_time(raw: Mapping[str, Any], key: str, fallback_clock: str) -> datetime:
    value = raw.get(key)
    if value:
        try:
            return naive_local(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
        except ValueError:
            logger.warning("Trip %s has unreadable %s %r; using its date", raw.get("trip_id"), key, value)

    try:
        day = date.fromisoformat(str(raw.get("date"))[:10])
    except ValueError:
        raise ValueError(f"Trip {raw.get('trip_id')} has neither {key} nor a date") from None
    return datetime.combine(day, time.fromisoformat(fallback_clock))


def _segment_from_dict(data: Mapping[str, Any]) -> TripSegment:
    return TripSegment(
        segment_id=str(data.get("segment_id", "")),
        category=SegmentCategory.parse(data.get("category")),
        km=as_decimal(data.get("km")),
        revenue=as_decimal(data.get("revenue")),
    )


def _fuel_from_dict(data: Mapping[str, Any]) -> FuelEntry:
    return FuelEntry(
        entry_id=str(data.get("entry_id", "")),
        fuel_type=FuelType.parse(data.get("fuel_type")),
        quantity=as_decimal(data.get("quantity")),
        amount=as_decimal(data.get("amount")),
    )


def is_current_shape(raw: Mapping[str, Any]) -> bool:
    return bool(raw.get("segments")) and raw.get("profit") is not None and "fuel_entries" in raw


__all__ = ["normalize_trip", "is_current_shape"]
