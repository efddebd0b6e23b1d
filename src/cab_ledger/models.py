from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

ZERO = Decimal("0")
PAISE = Decimal("0.01")


def as_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce form/JSON input to Decimal; anything unusable reads as ``default``."""
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value).strip() or "0")
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def money(value: Decimal) -> Decimal:
    return value.quantize(PAISE, rounding=ROUND_HALF_UP)


def naive_local(value: Optional[datetime]) -> Optional[datetime]:
    """Duty times are kept as naive local wall-clock time; aware values are converted."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class SegmentCategory(str, Enum):
    UBER = "uber"
    PERSONAL = "personal"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "SegmentCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class FuelType(str, Enum):
    CNG = "cng"
    PETROL = "petrol"

    @classmethod
    def parse(cls, value: Any) -> "FuelType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.CNG


class MaintenanceType(str, Enum):
    VEHICLE_SERVICE = "Vehicle Service"
    WATER_WASH = "Water Wash"
    WHEEL_ALIGNMENT = "Wheel Alignment"
    ADDITIONAL_REPAIR = "Additional Vehicle Repair"
    OTHERS = "Others"

    @classmethod
    def parse(cls, value: Any) -> "MaintenanceType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.OTHERS


@dataclass(frozen=True)
class TripSegment:
    segment_id: str
    category: SegmentCategory
    km: Decimal = ZERO
    revenue: Decimal = ZERO


@dataclass(frozen=True)
class FuelEntry:
    entry_id: str
    fuel_type: FuelType = FuelType.CNG
    quantity: Decimal = ZERO
    amount: Decimal = ZERO


@dataclass(frozen=True)
class Trip:
    """One duty of a driver on a vehicle, with its settled financials."""

    trip_id: str
    vehicle_id: str
    driver_id: str
    duty_start: datetime
    duty_end: datetime
    start_km: Decimal
    end_km: Decimal
    segments: tuple[TripSegment, ...]
    fuel_entries: tuple[FuelEntry, ...] = ()
    toll_other: Decimal = ZERO
    revenue: Decimal = ZERO
    fuel_cost: Decimal = ZERO
    driver_payout: Decimal = ZERO
    profit: Decimal = ZERO

    @property
    def date(self) -> date:
        return self.duty_start.date()

    @property
    def total_km(self) -> Decimal:
        return self.end_km - self.start_km


@dataclass(frozen=True)
class Vehicle:
    vehicle_id: str
    name: str
    plate_number: str
    model: str = ""
    current_odo: Decimal = ZERO
    insurance_expiry: Optional[date] = None
    tax_expiry: Optional[date] = None
    permit_expiry: Optional[date] = None
    pollution_expiry: Optional[date] = None
    fitness_expiry: Optional[date] = None


@dataclass(frozen=True)
class Driver:
    driver_id: str
    name: str
    mobile: str = ""
    license_number: str = ""
    license_expiry: Optional[date] = None


@dataclass(frozen=True)
class MaintenanceRecord:
    record_id: str
    vehicle_id: str
    date: date
    maintenance_type: MaintenanceType = MaintenanceType.OTHERS
    description: str = ""
    cost: Decimal = ZERO


@dataclass(frozen=True)
class TripDraft:
    """Snapshot of the trip entry form, re-settled on every change."""

    vehicle_id: str
    driver_id: str
    duty_start: Optional[datetime]
    duty_end: Optional[datetime]
    start_km: Decimal
    end_km: Decimal
    segments: tuple[TripSegment, ...] = field(default_factory=tuple)
    fuel_entries: tuple[FuelEntry, ...] = field(default_factory=tuple)
    toll_other: Decimal = ZERO

    @property
    def total_km(self) -> Decimal:
        return max(ZERO, self.end_km - self.start_km)
