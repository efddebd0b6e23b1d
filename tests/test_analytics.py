from datetime import date, datetime
from decimal import Decimal

from cab_ledger.analytics import dashboard_summary, fleet_financials, vehicle_financials
from cab_ledger.legacy import normalize_trip
from cab_ledger.models import MaintenanceRecord, MaintenanceType, SegmentCategory, Trip, TripSegment, Vehicle

VEHICLE = Vehicle(vehicle_id="veh-1", name="Dzire", plate_number="KA01")
OTHER_VEHICLE = Vehicle(vehicle_id="veh-2", name="Etios", plate_number="KA02")


def current_trip(vehicle_id="veh-1"):
    return Trip(
        trip_id="t-1",
        vehicle_id=vehicle_id,
        driver_id="drv-1",
        duty_start=datetime(2026, 3, 1, 8, 0),
        duty_end=datetime(2026, 3, 1, 20, 0),
        start_km=Decimal("1000"),
        end_km=Decimal("1060"),
        segments=(TripSegment("s1", SegmentCategory.UBER, Decimal("60"), Decimal("1000")),),
        toll_other=Decimal("14.74"),
        revenue=Decimal("1000.00"),
        fuel_cost=Decimal("500.00"),
        driver_payout=Decimal("585.26"),
        profit=Decimal("400.00"),
    )


def legacy_trip():
    return normalize_trip(
        {
            "trip_id": "old-1",
            "vehicle_id": "veh-1",
            "date": "2025-06-01",
            "start_km": 500,
            "end_km": 600,
            "trip_type": "uber",
            "revenue": 2000,
            "fuel_cost": 300,
            "toll_other": 50,
        }
    )


def test_vehicle_financials_use_stored_profit_and_deduct_maintenance():
    maintenance = [
        MaintenanceRecord("m-1", "veh-1", date(2026, 3, 2), MaintenanceType.VEHICLE_SERVICE, cost=Decimal("250")),
        MaintenanceRecord("m-2", "veh-2", date(2026, 3, 2), cost=Decimal("999")),
    ]

    result = vehicle_financials(VEHICLE, [current_trip(), legacy_trip()], maintenance)

    assert result.trip_count == 2
    assert result.total_km == Decimal("160")
    assert result.revenue == Decimal("3000")
    assert result.owner_profit == Decimal("2050")
    assert result.maintenance_cost == Decimal("250")
    assert result.net_owner_profit == Decimal("1800")
    assert result.expenses == Decimal("800") + Decimal("64.74") + Decimal("250")


def test_legacy_profit_fallback_ignores_category_split():
    assert legacy_trip().profit == Decimal("1650")


def test_fleet_financials_cover_vehicles_without_trips():
    rollup = fleet_financials([VEHICLE, OTHER_VEHICLE], [current_trip()], [])

    assert [f.vehicle_id for f in rollup] == ["veh-1", "veh-2"]
    assert rollup[1].trip_count == 0
    assert rollup[1].net_owner_profit == 0


def test_dashboard_expenses_are_actual_fuel_and_tolls():
    summary = dashboard_summary([current_trip(), current_trip("veh-2")])

    assert summary.revenue == Decimal("2000")
    assert summary.profit == Decimal("800")
    assert summary.expenses == Decimal("1029.48")
