from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Sequence

import yaml
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.worksheet.worksheet import Worksheet

from cab_ledger.models import Trip

DEFAULT_MAPPING_PATH = Path(__file__).resolve().parent.parent / "config" / "ledger_export.yaml"


@dataclass
class TripLedgerExportService:
    """Export settled trips into a ledger workbook laid out by a YAML mapping."""

    mapping_path: Path = DEFAULT_MAPPING_PATH

    def __post_init__(self) -> None:
        self.mapping = self._load_mapping(self.mapping_path)

    @staticmethod
    def _load_mapping(mapping_path: Path) -> dict[str, Any]:
        with Path(mapping_path).open("r", encoding="utf-8") as mapping_file:
            loaded = yaml.safe_load(mapping_file)

        if not isinstance(loaded, dict):
            msg = f"Mapping file must contain a dictionary at root: {mapping_path}"
            raise ValueError(msg)

        return loaded

    @property
    def sheet_name(self) -> str:
        return self.mapping["workbook"]["sheet_name"]

    def generate_export(self, trips: Sequence[Trip], output_path: Path | str) -> Path:
        """Write one row per trip plus a totals row and save to output_path."""
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = self.sheet_name

        worksheet["A1"] = self.mapping["workbook"].get("title", self.sheet_name)
        worksheet["A1"].font = Font(bold=True, size=14)

        header_row = int(self.mapping["header_row"])
        self._map_header(worksheet, header_row)
        last_row = self._map_trips(worksheet, trips, header_row + 1)
        self._map_totals(worksheet, header_row + 1, last_row)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(output_path)

        return output_path

    def _map_header(self, sheet: Worksheet, row: int) -> None:
        for field, column in self.mapping["columns"].items():
            cell = sheet[f"{column}{row}"]
            cell.value = field.replace("_", " ").title()
            cell.font = Font(bold=True)

    def _map_trips(self, sheet: Worksheet, trips: Sequence[Trip], start_row: int) -> int:
        row = start_row - 1
        for offset, trip in enumerate(sorted(trips, key=lambda t: t.duty_start)):
            row = start_row + offset
            values = _trip_row(trip)
            for field, column in self.mapping["columns"].items():
                sheet[f"{column}{row}"] = values.get(field)
        return row

    def _map_totals(self, sheet: Worksheet, first_row: int, last_row: int) -> None:
        totals = self.mapping.get("totals")
        if not totals:
            return
        row = last_row + 1
        sheet[f"{totals['label_cell_column']}{row}"] = totals.get("label", "Total")
        for field in totals["fields"]:
            column = self.mapping["columns"][field]
            if last_row < first_row:
                sheet[f"{column}{row}"] = 0
            else:
                sheet[f"{column}{row}"] = f"=SUM({column}{first_row}:{column}{last_row})"
            sheet[f"{column}{row}"].font = Font(bold=True)


def _trip_row(trip: Trip) -> dict[str, Any]:
    return {
        "date": trip.date,
        "vehicle_id": trip.vehicle_id,
        "driver_id": trip.driver_id,
        "start_km": _number(trip.start_km),
        "end_km": _number(trip.end_km),
        "total_km": _number(trip.total_km),
        "categories": ", ".join(s.category.value for s in trip.segments),
        "revenue": _number(trip.revenue),
        "fuel_cost": _number(trip.fuel_cost),
        "toll_other": _number(trip.toll_other),
        "driver_payout": _number(trip.driver_payout),
        "profit": _number(trip.profit),
    }


def _number(value: Decimal) -> float:
    return float(value)


def read_cells(path: Path | str, cells: list[str], sheet_name: str) -> dict[str, Any]:
    """Utility for validation/testing: read exact cell values from an exported workbook."""
    workbook: Workbook = load_workbook(path, data_only=False)
    sheet = workbook[sheet_name]
    return {cell: sheet[cell].value for cell in cells}
