from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from cab_ledger.config import STORAGE_KEYS, AppSettings, settings_from_dict, settings_to_dict
from cab_ledger.legacy import is_current_shape, normalize_trip
from cab_ledger.models import (
    Driver,
    MaintenanceRecord,
    MaintenanceType,
    Trip,
    Vehicle,
    as_decimal,
)

logger = logging.getLogger(__name__)


def _normalize_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


class KeyValueRepository:
    """JSON documents stored under named keys.

    Callers own the transaction, as with the other repositories: wrap writes in
    ``with conn:`` to commit them.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def load(self, key: str, default: Any) -> Any:
        row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except (TypeError, ValueError):
            logger.warning("Stored value for %s is corrupt; using default", key)
            return default

    def save(self, key: str, value: Any) -> None:
        payload = json.dumps(value, default=_normalize_value, ensure_ascii=False)
        self.conn.execute(
            """
            INSERT INTO kv_store(key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key)
            DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, payload),
        )


class FleetRepository:
    """Typed access to the ledger's named collections."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.store = KeyValueRepository(conn)

    def list_vehicles(self) -> list[Vehicle]:
        return [vehicle_from_dict(item) for item in self._collection("vehicles")]

    def save_vehicles(self, vehicles: Sequence[Vehicle]) -> None:
        self.store.save(STORAGE_KEYS["vehicles"], [asdict(v) for v in vehicles])

    def list_drivers(self) -> list[Driver]:
        return [driver_from_dict(item) for item in self._collection("drivers")]

    def save_drivers(self, drivers: Sequence[Driver]) -> None:
        self.store.save(STORAGE_KEYS["drivers"], [asdict(d) for d in drivers])

    def list_trips(self) -> list[Trip]:
        raw_trips = self._collection("trips")
        legacy = sum(1 for raw in raw_trips if not is_current_shape(raw))
        if legacy:
            logger.info("Normalizing %d legacy trip record(s)", legacy)
        trips = []
        for raw in raw_trips:
            try:
                trips.append(normalize_trip(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable trip record %s: %s", raw.get("trip_id"), exc)
        return trips

    def save_trips(self, trips: Sequence[Trip]) -> None:
        self.store.save(STORAGE_KEYS["trips"], [trip_to_dict(t) for t in trips])

    def list_maintenance(self) -> list[MaintenanceRecord]:
        return [maintenance_from_dict(item) for item in self._collection("maintenance")]

    def save_maintenance(self, records: Sequence[MaintenanceRecord]) -> None:
        self.store.save(STORAGE_KEYS["maintenance"], [asdict(m) for m in records])

    def load_settings(self) -> AppSettings:
        return settings_from_dict(self.store.load(STORAGE_KEYS["settings"], {}))

    def save_settings(self, settings: AppSettings) -> None:
        self.store.save(STORAGE_KEYS["settings"], settings_to_dict(settings))

    def has_settings(self) -> bool:
        return self.store.load(STORAGE_KEYS["settings"], None) is not None

    def _collection(self, name: str) -> list[Mapping[str, Any]]:
        loaded = self.store.load(STORAGE_KEYS[name], [])
        if not isinstance(loaded, list):
            logger.warning("Stored %s collection is not a list; using empty", name)
            return []
        return [item for item in loaded if isinstance(item, Mapping)]


def trip_to_dict(trip: Trip) -> dict[str, Any]:
    data = asdict(trip)
    data["date"] = trip.date.isoformat()
    data["total_km"] = trip.total_km
    return data


def vehicle_from_dict(data: Mapping[str, Any]) -> Vehicle:
    return Vehicle(
        vehicle_id=str(data["vehicle_id"]),
        name=str(data.get("name", "")),
        plate_number=str(data.get("plate_number", "")),
        model=str(data.get("model", "")),
        current_odo=as_decimal(data.get("current_odo")),
        insurance_expiry=_parse_date(data.get("insurance_expiry")),
        tax_expiry=_parse_date(data.get("tax_expiry")),
        permit_expiry=_parse_date(data.get("permit_expiry")),
        pollution_expiry=_parse_date(data.get("pollution_expiry")),
        fitness_expiry=_parse_date(data.get("fitness_expiry")),
    )


def driver_from_dict(data: Mapping[str, Any]) -> Driver:
    return Driver(
        driver_id=str(data["driver_id"]),
        name=str(data.get("name", "")),
        mobile=str(data.get("mobile", "")),
        license_number=str(data.get("license_number", "")),
        license_expiry=_parse_date(data.get("license_expiry")),
    )


def maintenance_from_dict(data: Mapping[str, Any]) -> MaintenanceRecord:
    return MaintenanceRecord(
        record_id=str(data["record_id"]),
        vehicle_id=str(data.get("vehicle_id", "")),
        date=_parse_date(data.get("date")) or date.today(),
        maintenance_type=MaintenanceType.parse(data.get("maintenance_type")),
        description=str(data.get("description", "")),
        cost=as_decimal(data.get("cost")),
    )
