"""Fare estimation for quoted trips.

Four tariff schemes are supported:

- one-way and round-trip: flat rate per km
- city: a minimum charge that bundles a time and distance allowance, plus
  per-minute and per-km overage
- multi-day: daily rent with a per-day distance allowance and a night bata for
  every night away

``estimate`` is pure: it never persists anything and never raises for bad
numeric input, which reads as zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from .config import TariffSettings
from .models import ZERO, as_decimal

MINUTES_PER_DAY = 24 * 60


class TripType(str, Enum):
    ONE_WAY = "one-way"
    ROUND_TRIP = "round-trip"
    CITY = "city"
    MULTI_DAY = "multi-day"


@dataclass(frozen=True)
class EstimateInputs:
    km: Any = 0
    days: Any = 1
    extra_charges: Any = 0
    from_time: str = "10:00"
    to_time: str = "11:00"
    route_note: str = ""


@dataclass(frozen=True)
class LineItem:
    label: str
    amount: str


@dataclass(frozen=True)
class Estimate:
    trip_type: TripType
    km: Decimal
    total: Decimal
    line_items: Tuple[LineItem, ...] = field(default_factory=tuple)


def format_amount(value: Decimal, grouping: bool = False) -> str:
    """Render without trailing zeros or exponent, e.g. 3600.0 -> '3600'."""
    if value == value.to_integral_value():
        value = value.to_integral_value()
    else:
        value = value.normalize()
    return f"{value:,f}" if grouping else f"{value:f}"


def clock_minutes(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string; unparseable reads as 0."""
    hours, _, minutes = str(value or "").partition(":")
    try:
        return int(hours) * 60 + int(minutes or 0)
    except ValueError:
        return 0


def duration_minutes(from_time: str, to_time: str) -> int:
    minutes = clock_minutes(to_time) - clock_minutes(from_time)
    if minutes < 0:
        # end time is read as the next day; trips over 24h are not representable
        minutes += MINUTES_PER_DAY
    return minutes


def estimate(
    trip_type: TripType | str,
    inputs: EstimateInputs,
    tariffs: TariffSettings,
    currency_symbol: str = "₹",
) -> Estimate:
    trip_type = TripType(trip_type)
    km = as_decimal(inputs.km)
    extra_charges = as_decimal(inputs.extra_charges)

    base_total, items = _PRICERS[trip_type](inputs, km, tariffs, currency_symbol)

    if extra_charges > 0:
        items.append(LineItem("Extra Charges", f"{currency_symbol}{format_amount(extra_charges)}"))

    return Estimate(
        trip_type=trip_type,
        km=km,
        total=base_total + extra_charges,
        line_items=tuple(items),
    )


def _price_one_way(
    inputs: EstimateInputs, km: Decimal, tariffs: TariffSettings, sym: str
) -> Tuple[Decimal, List[LineItem]]:
    rate = tariffs.one_way.rate_per_km
    base = km * rate
    label = f"Base Fare ({format_amount(km)} km × {sym}{format_amount(rate)})"
    return base, [LineItem(label, f"{sym}{format_amount(base)}")]


def _price_round_trip(
    inputs: EstimateInputs, km: Decimal, tariffs: TariffSettings, sym: str
) -> Tuple[Decimal, List[LineItem]]:
    rate = tariffs.round_trip.rate_per_km
    base = km * rate
    label = f"Fare ({format_amount(km)} km × {sym}{format_amount(rate)})"
    return base, [LineItem(label, f"{sym}{format_amount(base)}")]


def _price_city(
    inputs: EstimateInputs, km: Decimal, tariffs: TariffSettings, sym: str
) -> Tuple[Decimal, List[LineItem]]:
    conf = tariffs.city
    minutes = Decimal(duration_minutes(inputs.from_time, inputs.to_time))

    allowed_extra_km = minutes * conf.free_distance_per_minute_factor
    total_allowed_km = conf.included_base_distance_km + allowed_extra_km

    extra_distance = max(ZERO, km - total_allowed_km)
    extra_distance_charge = extra_distance * conf.extra_km_rate

    extra_time = max(ZERO, minutes - conf.included_base_time_minutes)
    time_charge = extra_time * conf.rate_per_extra_minute

    total = conf.minimum_base_charge + extra_distance_charge + time_charge

    items = [
        LineItem(
            f"Base Charge ({format_amount(conf.included_base_time_minutes)}m / "
            f"{format_amount(conf.included_base_distance_km)}km)",
            f"{sym}{format_amount(conf.minimum_base_charge)}",
        ),
        LineItem("Duration", f"{format_amount(minutes)} mins"),
        LineItem("Allowed Dist (Base + Time)", f"{total_allowed_km:.1f} km"),
    ]
    if extra_time > 0:
        items.append(
            LineItem(
                f"Extra Time ({format_amount(extra_time)}m × {sym}{format_amount(conf.rate_per_extra_minute)})",
                f"{sym}{format_amount(time_charge)}",
            )
        )
    if extra_distance > 0:
        rounded_charge = extra_distance_charge.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        items.append(
            LineItem(
                f"Extra Dist ({extra_distance:.1f}km × {sym}{format_amount(conf.extra_km_rate)})",
                f"{sym}{rounded_charge}",
            )
        )
    return total, items


def _price_multi_day(
    inputs: EstimateInputs, km: Decimal, tariffs: TariffSettings, sym: str
) -> Tuple[Decimal, List[LineItem]]:
    conf = tariffs.multi_day
    days = as_decimal(inputs.days)

    rent = days * conf.daily_rent_amount
    included_km = days * conf.included_distance_per_day

    extra_distance = max(ZERO, km - included_km)
    extra_distance_charge = extra_distance * conf.extra_km_rate

    nights = max(ZERO, days - 1)
    night_allowance = nights * conf.night_bata_amount

    total = rent + extra_distance_charge + night_allowance

    items = [
        LineItem(
            f"Rent ({format_amount(days)} days × {sym}{format_amount(conf.daily_rent_amount)})",
            f"{sym}{format_amount(rent)}",
        ),
        LineItem("Included Dist", f"{format_amount(included_km)} km"),
    ]
    if extra_distance > 0:
        items.append(
            LineItem(
                f"Extra KM ({format_amount(extra_distance)}km × {sym}{format_amount(conf.extra_km_rate)})",
                f"{sym}{format_amount(extra_distance_charge)}",
            )
        )
    if nights > 0:
        items.append(
            LineItem(
                f"Night Bata ({format_amount(nights)} × {sym}{format_amount(conf.night_bata_amount)})",
                f"{sym}{format_amount(night_allowance)}",
            )
        )
    return total, items


_PRICERS: Dict[TripType, Callable[..., Tuple[Decimal, List[LineItem]]]] = {
    TripType.ONE_WAY: _price_one_way,
    TripType.ROUND_TRIP: _price_round_trip,
    TripType.CITY: _price_city,
    TripType.MULTI_DAY: _price_multi_day,
}


__all__ = [
    "Estimate",
    "EstimateInputs",
    "LineItem",
    "TripType",
    "clock_minutes",
    "duration_minutes",
    "estimate",
    "format_amount",
]
