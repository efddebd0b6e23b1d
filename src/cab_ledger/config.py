"""Tariff and commission settings, with the default-overlay used at load time."""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import as_decimal

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "vehicles": "hypro_vehicles",
    "drivers": "hypro_drivers",
    "trips": "hypro_trips",
    "maintenance": "hypro_maintenance",
    "settings": "hypro_settings",
}

TARIFF_GROUPS = ("one_way", "round_trip", "city", "multi_day")


@dataclass(frozen=True)
class OneWayTariff:
    rate_per_km: Decimal = Decimal("36")


@dataclass(frozen=True)
class RoundTripTariff:
    rate_per_km: Decimal = Decimal("20")


@dataclass(frozen=True)
class CityTariff:
    minimum_base_charge: Decimal = Decimal("400")
    included_base_time_minutes: Decimal = Decimal("60")
    included_base_distance_km: Decimal = Decimal("10")
    rate_per_extra_minute: Decimal = Decimal("5")
    free_distance_per_minute_factor: Decimal = Decimal("0.2")
    extra_km_rate: Decimal = Decimal("18")


@dataclass(frozen=True)
class MultiDayTariff:
    daily_rent_amount: Decimal = Decimal("2800")
    included_distance_per_day: Decimal = Decimal("120")
    extra_km_rate: Decimal = Decimal("18")
    night_bata_amount: Decimal = Decimal("400")


@dataclass(frozen=True)
class TariffSettings:
    one_way: OneWayTariff = field(default_factory=OneWayTariff)
    round_trip: RoundTripTariff = field(default_factory=RoundTripTariff)
    city: CityTariff = field(default_factory=CityTariff)
    multi_day: MultiDayTariff = field(default_factory=MultiDayTariff)


@dataclass(frozen=True)
class LogicSettings:
    """Commission and yield rules. Shares are percentages, rates are per km."""

    uber_driver_share: Decimal = Decimal("60")
    personal_driver_share: Decimal = Decimal("25")
    other_driver_share: Decimal = Decimal("30")
    target_yield: Decimal = Decimal("19")
    incentive_rate: Decimal = Decimal("2")
    fine_rate: Decimal = Decimal("2")
    fuel_allowance_rate: Decimal = Decimal("4")


@dataclass(frozen=True)
class AppSettings:
    currency_symbol: str = "₹"
    tariffs: TariffSettings = field(default_factory=TariffSettings)
    logic: LogicSettings = field(default_factory=LogicSettings)

    def with_tariff(self, group: str, **changes: Any) -> "AppSettings":
        if group not in TARIFF_GROUPS:
            raise KeyError(f"Unknown tariff group: {group}")
        current = getattr(self.tariffs, group)
        updated = replace(current, **_numeric_changes(current, changes))
        return replace(self, tariffs=replace(self.tariffs, **{group: updated}))

    def with_logic(self, **changes: Any) -> "AppSettings":
        return replace(self, logic=replace(self.logic, **_numeric_changes(self.logic, changes)))


DEFAULT_SETTINGS = AppSettings()


def _numeric_changes(target: Any, changes: Mapping[str, Any]) -> dict[str, Decimal]:
    known = {f.name for f in fields(target)}
    invalid = set(changes) - known
    if invalid:
        raise KeyError(f"Unknown fields for {type(target).__name__}: {sorted(invalid)}")
    return {name: as_decimal(value) for name, value in changes.items()}


def deep_merge(defaults: Mapping[str, Any], stored: Any) -> dict[str, Any]:
    """Overlay ``stored`` onto ``defaults`` field by field.

    Nested groups are merged recursively so that a field added to the defaults
    after a document was saved still gets its default value. Keys the defaults
    do not know are dropped, and a stored value that is not a mapping where a
    group is expected falls back to the default group.
    """
    merged = copy.deepcopy(dict(defaults))
    if not isinstance(stored, Mapping):
        return merged
    for key, default_value in defaults.items():
        if key not in stored:
            continue
        if isinstance(default_value, Mapping):
            merged[key] = deep_merge(default_value, stored[key])
        elif stored[key] is not None:
            merged[key] = stored[key]
    return merged


def settings_to_dict(settings: AppSettings) -> dict[str, Any]:
    return _stringify(asdict(settings))


def settings_from_dict(data: Any) -> AppSettings:
    merged = deep_merge(settings_to_dict(DEFAULT_SETTINGS), data)
    tariffs = merged["tariffs"]
    return AppSettings(
        currency_symbol=str(merged["currency_symbol"]),
        tariffs=TariffSettings(
            one_way=_numeric_group(OneWayTariff, tariffs["one_way"]),
            round_trip=_numeric_group(RoundTripTariff, tariffs["round_trip"]),
            city=_numeric_group(CityTariff, tariffs["city"]),
            multi_day=_numeric_group(MultiDayTariff, tariffs["multi_day"]),
        ),
        logic=_numeric_group(LogicSettings, merged["logic"]),
    )


def load_settings_file(path: Path | str) -> AppSettings:
    """Read a YAML settings document and overlay it on the defaults."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as settings_file:
        loaded = yaml.safe_load(settings_file) or {}

    if not isinstance(loaded, dict):
        msg = f"Settings file must contain a dictionary at root: {path}"
        raise ValueError(msg)

    logger.info("Loaded settings overrides from %s", path)
    return settings_from_dict(loaded)


def _numeric_group(cls: type, data: Mapping[str, Any]) -> Any:
    """Build a settings group; a stored value that does not parse keeps its default."""
    defaults = cls()
    values = {}
    for f in fields(cls):
        default = getattr(defaults, f.name)
        stored = data.get(f.name)
        values[f.name] = as_decimal(stored, default=default)
        if values[f.name] is default:
            logger.warning("Stored %s.%s=%r is not a number; using %s", cls.__name__, f.name, stored, default)
    return cls(**values)


def _stringify(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _stringify(item) for key, item in value.items()}
    if isinstance(value, Decimal):
        return str(value)
    return value
