from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

from backend.services.excel_export import TripLedgerExportService, read_cells
from cab_ledger import db
from cab_ledger.models import FuelEntry, FuelType, SegmentCategory, TripDraft, TripSegment, Vehicle
from cab_ledger.services import FleetService, TripService


def build_sample_trips() -> list:
    """Settle two demo duties against an in-memory store."""
    conn = db.initialize()
    FleetService(conn).add_vehicle(
        Vehicle(vehicle_id="veh-1", name="Dzire", plate_number="KA01AB1234", current_odo=Decimal("42000"))
    )
    trips = TripService(conn)
    trips.add_trip(
        TripDraft(
            vehicle_id="veh-1",
            driver_id="drv-1",
            duty_start=datetime(2026, 2, 1, 8, 0),
            duty_end=datetime(2026, 2, 1, 20, 0),
            start_km=Decimal("42000"),
            end_km=Decimal("42180"),
            segments=(TripSegment("s1", SegmentCategory.UBER, revenue=Decimal("3420")),),
            fuel_entries=(FuelEntry("f1", FuelType.CNG, Decimal("9"), Decimal("780")),),
            toll_other=Decimal("120"),
        )
    )
    trips.add_trip(
        TripDraft(
            vehicle_id="veh-1",
            driver_id="drv-1",
            duty_start=datetime(2026, 2, 2, 8, 0),
            duty_end=datetime(2026, 2, 2, 19, 0),
            start_km=Decimal("42180"),
            end_km=Decimal("42300"),
            segments=(
                TripSegment("s1", SegmentCategory.UBER, Decimal("70"), Decimal("1400")),
                TripSegment("s2", SegmentCategory.PERSONAL, Decimal("50"), Decimal("1500")),
            ),
        )
    )
    return trips.list_trips()


def main() -> int:
    service = TripLedgerExportService()
    trips = build_sample_trips()

    output_path = Path("artifacts/sample_trip_ledger.xlsx")
    service.generate_export(trips, output_path)

    header_row = int(service.mapping["header_row"])
    columns = service.mapping["columns"]
    first_row = header_row + 1
    mandatory_cells = [f"{columns[field]}{first_row + offset}" for offset in range(len(trips)) for field in ("date", "revenue", "profit")]
    values = read_cells(output_path, mandatory_cells, service.sheet_name)
    missing = [cell for cell, value in values.items() if value in (None, "")]

    if missing:
        print("Verification failed. Missing mandatory values in:", ", ".join(missing))
        return 1

    print(f"Verification passed. Ledger exported to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
