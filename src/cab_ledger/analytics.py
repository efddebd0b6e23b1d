from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Sequence

from .models import ZERO, MaintenanceRecord, Trip, Vehicle


@dataclass(frozen=True)
class VehicleFinancials:
    vehicle_id: str
    trip_count: int
    total_km: Decimal
    revenue: Decimal
    fuel_cost: Decimal
    toll_other: Decimal
    maintenance_cost: Decimal
    owner_profit: Decimal

    @property
    def expenses(self) -> Decimal:
        return self.fuel_cost + self.toll_other + self.maintenance_cost

    @property
    def net_owner_profit(self) -> Decimal:
        return self.owner_profit - self.maintenance_cost


@dataclass(frozen=True)
class DashboardSummary:
    revenue: Decimal
    profit: Decimal
    expenses: Decimal


def vehicle_financials(
    vehicle: Vehicle,
    trips: Iterable[Trip],
    maintenance: Iterable[MaintenanceRecord],
) -> VehicleFinancials:
    """Roll up persisted trips and maintenance for one vehicle.

    Owner profit is the sum of each trip's stored ``profit``; trips are expected
    to have been through load-time normalization already.
    """
    vehicle_trips = [t for t in trips if t.vehicle_id == vehicle.vehicle_id]
    maintenance_cost = sum(
        (m.cost for m in maintenance if m.vehicle_id == vehicle.vehicle_id),
        ZERO,
    )
    return VehicleFinancials(
        vehicle_id=vehicle.vehicle_id,
        trip_count=len(vehicle_trips),
        total_km=sum((t.total_km for t in vehicle_trips), ZERO),
        revenue=sum((t.revenue for t in vehicle_trips), ZERO),
        fuel_cost=sum((t.fuel_cost for t in vehicle_trips), ZERO),
        toll_other=sum((t.toll_other for t in vehicle_trips), ZERO),
        maintenance_cost=maintenance_cost,
        owner_profit=sum((t.profit for t in vehicle_trips), ZERO),
    )


def fleet_financials(
    vehicles: Sequence[Vehicle],
    trips: Sequence[Trip],
    maintenance: Sequence[MaintenanceRecord],
) -> List[VehicleFinancials]:
    return [vehicle_financials(v, trips, maintenance) for v in vehicles]


def dashboard_summary(trips: Iterable[Trip]) -> DashboardSummary:
    trips = list(trips)
    return DashboardSummary(
        revenue=sum((t.revenue for t in trips), ZERO),
        profit=sum((t.profit for t in trips), ZERO),
        expenses=sum((t.fuel_cost + t.toll_other for t in trips), ZERO),
    )
