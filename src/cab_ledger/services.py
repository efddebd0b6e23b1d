from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Literal, Optional
from uuid import uuid4

from cab_ledger.config import DEFAULT_SETTINGS, AppSettings
from cab_ledger.models import (
    Driver,
    MaintenanceRecord,
    MaintenanceType,
    Trip,
    TripDraft,
    TripSegment,
    SegmentCategory,
    Vehicle,
    as_decimal,
    money,
    naive_local,
)
from cab_ledger.repositories import FleetRepository
from cab_ledger.settlement import Settlement, apply_total_distance, settle

logger = logging.getLogger(__name__)

SortKey = Literal["date", "revenue", "profit"]
SortOrder = Literal["asc", "desc"]


class TripValidationError(ValueError):
    """Raised when a trip draft cannot be saved as entered."""


class RecordNotFoundError(LookupError):
    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} with ID {resource_id} not found")


def new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class TripQuery:
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sort_by: SortKey = "date"
    order: SortOrder = "desc"


class SettingsService:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.repo = FleetRepository(conn)

    def current(self) -> AppSettings:
        return self.repo.load_settings()

    def save(self, settings: AppSettings) -> AppSettings:
        with self.conn:
            self.repo.save_settings(settings)
        logger.info("Settings saved")
        return settings

    def seed(self, settings: AppSettings) -> bool:
        """Store ``settings`` only if nothing has been saved yet."""
        if self.repo.has_settings():
            return False
        self.save(settings)
        return True

    def update_tariff(self, group: str, **changes: Any) -> AppSettings:
        updated = self.current().with_tariff(group, **changes)
        logger.info("Tariff %s updated: %s", group, sorted(changes))
        return self.save(updated)

    def update_logic(self, **changes: Any) -> AppSettings:
        updated = self.current().with_logic(**changes)
        logger.info("Logic settings updated: %s", sorted(changes))
        return self.save(updated)

    def reset_defaults(self) -> AppSettings:
        logger.info("Settings reset to defaults")
        return self.save(DEFAULT_SETTINGS)


class TripService:
    """Turns trip entry drafts into settled, persisted trips."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.repo = FleetRepository(conn)
        self.settings = SettingsService(conn)

    def preview(self, draft: TripDraft) -> Settlement:
        return settle(
            draft.segments,
            draft.fuel_entries,
            draft.toll_other,
            self.settings.current().logic,
            draft.total_km,
        )

    def new_draft(self, vehicle_id: str, driver_id: str = "") -> TripDraft:
        """Blank draft whose odometer starts at the vehicle's last reading."""
        vehicle = self._vehicle(vehicle_id)
        return TripDraft(
            vehicle_id=vehicle.vehicle_id,
            driver_id=driver_id,
            duty_start=None,
            duty_end=None,
            start_km=vehicle.current_odo,
            end_km=vehicle.current_odo,
            segments=(TripSegment(segment_id=new_id(), category=SegmentCategory.UBER),),
        )

    def add_trip(self, draft: TripDraft) -> Trip:
        trip = self._build_trip(new_id(), draft)
        vehicles = self.repo.list_vehicles()
        if not any(v.vehicle_id == trip.vehicle_id for v in vehicles):
            raise RecordNotFoundError("Vehicle", trip.vehicle_id)

        updated_vehicles = [
            replace(v, current_odo=trip.end_km) if v.vehicle_id == trip.vehicle_id else v
            for v in vehicles
        ]
        with self.conn:
            self.repo.save_trips([*self.repo.list_trips(), trip])
            self.repo.save_vehicles(updated_vehicles)

        logger.info(
            "Trip %s added for vehicle %s: revenue=%s profit=%s",
            trip.trip_id,
            trip.vehicle_id,
            trip.revenue,
            trip.profit,
        )
        return trip

    def update_trip(self, trip_id: str, draft: TripDraft) -> Trip:
        trips = self.repo.list_trips()
        if not any(t.trip_id == trip_id for t in trips):
            raise RecordNotFoundError("Trip", trip_id)

        trip = self._build_trip(trip_id, draft)
        with self.conn:
            self.repo.save_trips([trip if t.trip_id == trip_id else t for t in trips])

        logger.info("Trip %s recomputed and replaced", trip_id)
        return trip

    def get_trip(self, trip_id: str) -> Trip:
        for trip in self.repo.list_trips():
            if trip.trip_id == trip_id:
                return trip
        raise RecordNotFoundError("Trip", trip_id)

    def draft_from_trip(self, trip: Trip) -> TripDraft:
        return TripDraft(
            vehicle_id=trip.vehicle_id,
            driver_id=trip.driver_id,
            duty_start=trip.duty_start,
            duty_end=trip.duty_end,
            start_km=trip.start_km,
            end_km=trip.end_km,
            segments=trip.segments,
            fuel_entries=trip.fuel_entries,
            toll_other=trip.toll_other,
        )

    def list_trips(self, query: TripQuery = TripQuery()) -> list[Trip]:
        trips = self.repo.list_trips()
        if query.vehicle_id:
            trips = [t for t in trips if t.vehicle_id == query.vehicle_id]
        if query.driver_id:
            trips = [t for t in trips if t.driver_id == query.driver_id]
        if query.start_date:
            trips = [t for t in trips if t.date >= query.start_date]
        if query.end_date:
            trips = [t for t in trips if t.date <= query.end_date]

        sort_keys = {
            "date": lambda t: t.duty_start,
            "revenue": lambda t: t.revenue,
            "profit": lambda t: t.profit,
        }
        return sorted(trips, key=sort_keys[query.sort_by], reverse=query.order == "desc")

    def _build_trip(self, trip_id: str, draft: TripDraft) -> Trip:
        self._validate(draft)
        total_km = draft.end_km - draft.start_km
        settlement = settle(
            draft.segments,
            draft.fuel_entries,
            draft.toll_other,
            self.settings.current().logic,
            total_km,
        )
        return Trip(
            trip_id=trip_id,
            vehicle_id=draft.vehicle_id,
            driver_id=draft.driver_id,
            duty_start=naive_local(draft.duty_start),
            duty_end=naive_local(draft.duty_end),
            start_km=draft.start_km,
            end_km=draft.end_km,
            segments=apply_total_distance(draft.segments, total_km),
            fuel_entries=tuple(draft.fuel_entries),
            toll_other=as_decimal(draft.toll_other),
            revenue=money(settlement.total_revenue),
            fuel_cost=money(settlement.total_fuel_bill),
            driver_payout=money(settlement.total_driver_payout),
            profit=money(settlement.total_owner_share),
        )

    def _validate(self, draft: TripDraft) -> None:
        if draft.end_km <= draft.start_km:
            raise TripValidationError("End KM must be greater than Start KM")
        if draft.duty_start is None or draft.duty_end is None:
            raise TripValidationError("Please set Duty Start and End times.")
        if not draft.segments:
            raise TripValidationError("A trip needs at least one segment.")

    def _vehicle(self, vehicle_id: str) -> Vehicle:
        for vehicle in self.repo.list_vehicles():
            if vehicle.vehicle_id == vehicle_id:
                return vehicle
        raise RecordNotFoundError("Vehicle", vehicle_id)


class FleetService:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.repo = FleetRepository(conn)

    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        with self.conn:
            self.repo.save_vehicles([*self.repo.list_vehicles(), vehicle])
        logger.info("Vehicle %s (%s) added", vehicle.vehicle_id, vehicle.plate_number)
        return vehicle

    def update_vehicle(self, vehicle: Vehicle) -> Vehicle:
        vehicles = self.repo.list_vehicles()
        if not any(v.vehicle_id == vehicle.vehicle_id for v in vehicles):
            raise RecordNotFoundError("Vehicle", vehicle.vehicle_id)
        with self.conn:
            self.repo.save_vehicles([vehicle if v.vehicle_id == vehicle.vehicle_id else v for v in vehicles])
        logger.info("Vehicle %s updated", vehicle.vehicle_id)
        return vehicle

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        for vehicle in self.repo.list_vehicles():
            if vehicle.vehicle_id == vehicle_id:
                return vehicle
        raise RecordNotFoundError("Vehicle", vehicle_id)

    def add_driver(self, driver: Driver) -> Driver:
        with self.conn:
            self.repo.save_drivers([*self.repo.list_drivers(), driver])
        logger.info("Driver %s added", driver.driver_id)
        return driver

    def delete_driver(self, driver_id: str) -> None:
        drivers = self.repo.list_drivers()
        remaining = [d for d in drivers if d.driver_id != driver_id]
        if len(remaining) == len(drivers):
            raise RecordNotFoundError("Driver", driver_id)
        with self.conn:
            self.repo.save_drivers(remaining)
        logger.info("Driver %s deleted", driver_id)

    def add_maintenance(
        self,
        vehicle_id: str,
        cost: Any,
        maintenance_type: Any = MaintenanceType.OTHERS,
        description: str = "",
        on: Optional[date] = None,
    ) -> MaintenanceRecord:
        self.get_vehicle(vehicle_id)
        record = MaintenanceRecord(
            record_id=new_id(),
            vehicle_id=vehicle_id,
            date=on or date.today(),
            maintenance_type=MaintenanceType.parse(maintenance_type),
            description=description,
            cost=as_decimal(cost),
        )
        with self.conn:
            self.repo.save_maintenance([*self.repo.list_maintenance(), record])
        logger.info("Maintenance %s recorded for vehicle %s: %s", record.maintenance_type.value, vehicle_id, record.cost)
        return record

    def list_maintenance(
        self,
        vehicle_id: Optional[str] = None,
        maintenance_type: Optional[MaintenanceType] = None,
    ) -> list[MaintenanceRecord]:
        records = self.repo.list_maintenance()
        if vehicle_id:
            records = [m for m in records if m.vehicle_id == vehicle_id]
        if maintenance_type:
            records = [m for m in records if m.maintenance_type == maintenance_type]
        return sorted(records, key=lambda m: m.date, reverse=True)
