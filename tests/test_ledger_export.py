from datetime import date, datetime
from decimal import Decimal

import pytest

from backend.services.excel_export import TripLedgerExportService, read_cells
from cab_ledger.models import SegmentCategory, Trip, TripSegment


def make_trip(trip_id, day, revenue, profit):
    return Trip(
        trip_id=trip_id,
        vehicle_id="veh-1",
        driver_id="drv-1",
        duty_start=datetime(2026, 3, day, 8, 0),
        duty_end=datetime(2026, 3, day, 20, 0),
        start_km=Decimal("1000"),
        end_km=Decimal("1060"),
        segments=(
            TripSegment("a", SegmentCategory.UBER, Decimal("40"), Decimal(revenue)),
            TripSegment("b", SegmentCategory.PERSONAL, Decimal("20"), Decimal("0")),
        ),
        toll_other=Decimal("14.74"),
        revenue=Decimal(revenue),
        fuel_cost=Decimal("500.00"),
        driver_payout=Decimal("585.26"),
        profit=Decimal(profit),
    )


@pytest.fixture
def service():
    return TripLedgerExportService()


def test_export_writes_rows_in_duty_order_with_totals(service, tmp_path):
    later = make_trip("t-2", 5, "1200.00", "600.00")
    earlier = make_trip("t-1", 1, "1000.00", "400.00")

    path = service.generate_export([later, earlier], tmp_path / "out" / "ledger.xlsx")

    cells = read_cells(path, ["A1", "H3", "A4", "G4", "H4", "L4", "H5", "G6", "H6", "L6"], service.sheet_name)
    assert cells["A1"] == "Trip Ledger"
    assert cells["H3"] == "Revenue"
    assert cells["A4"].date() == date(2026, 3, 1)
    assert cells["G4"] == "uber, personal"
    assert cells["H4"] == 1000.0
    assert cells["L4"] == 400.0
    assert cells["H5"] == 1200.0
    assert cells["G6"] == "Total"
    assert cells["H6"] == "=SUM(H4:H5)"
    assert cells["L6"] == "=SUM(L4:L5)"


def test_export_without_trips_writes_zero_totals(service, tmp_path):
    path = service.generate_export([], tmp_path / "empty.xlsx")

    cells = read_cells(path, ["G4", "H4", "F4"], service.sheet_name)
    assert cells == {"G4": "Total", "H4": 0, "F4": 0}


def test_mapping_must_be_a_dictionary(tmp_path):
    mapping = tmp_path / "mapping.yaml"
    mapping.write_text("- not\n- a mapping\n", encoding="utf-8")

    with pytest.raises(ValueError):
        TripLedgerExportService(mapping_path=mapping)
