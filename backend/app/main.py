from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field, field_validator

from backend.app.config import ApiSettings
from backend.services.excel_export import TripLedgerExportService
from cab_ledger import db
from cab_ledger.analytics import dashboard_summary, fleet_financials, vehicle_financials
from cab_ledger.config import TARIFF_GROUPS, load_settings_file, settings_to_dict
from cab_ledger.estimator import EstimateInputs, TripType, estimate
from cab_ledger.log import setup_logging
from cab_ledger.models import (
    Driver,
    FuelEntry,
    FuelType,
    MaintenanceType,
    SegmentCategory,
    Trip,
    TripDraft,
    TripSegment,
    Vehicle,
    naive_local,
)
from cab_ledger.repositories import trip_to_dict
from cab_ledger.services import (
    FleetService,
    RecordNotFoundError,
    SettingsService,
    TripQuery,
    TripService,
    TripValidationError,
    new_id,
)
from cab_ledger.settlement import Settlement
from cab_ledger.ui import render_quote_text, whatsapp_share_url

logger = logging.getLogger(__name__)


class EstimateRequest(BaseModel):
    trip_type: TripType
    km: Decimal = Decimal("0")
    days: Decimal = Decimal("1")
    extra_charges: Decimal = Decimal("0")
    from_time: str = "10:00"
    to_time: str = "11:00"
    route_note: str = ""

    def to_inputs(self) -> EstimateInputs:
        return EstimateInputs(
            km=self.km,
            days=self.days,
            extra_charges=self.extra_charges,
            from_time=self.from_time,
            to_time=self.to_time,
            route_note=self.route_note,
        )


class SegmentIn(BaseModel):
    segment_id: Optional[str] = None
    category: SegmentCategory = SegmentCategory.UBER
    km: Decimal = Decimal("0")
    revenue: Decimal = Decimal("0")


class FuelIn(BaseModel):
    entry_id: Optional[str] = None
    fuel_type: FuelType = FuelType.CNG
    quantity: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")


class TripIn(BaseModel):
    vehicle_id: str
    driver_id: str = ""
    duty_start: Optional[datetime] = None
    duty_end: Optional[datetime] = None
    start_km: Decimal
    end_km: Decimal
    segments: list[SegmentIn] = Field(default_factory=lambda: [SegmentIn()])
    fuel_entries: list[FuelIn] = Field(default_factory=list)
    toll_other: Decimal = Decimal("0")

    @field_validator("duty_start", "duty_end")
    @classmethod
    def local_duty_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_local(value)

    def to_draft(self) -> TripDraft:
        return TripDraft(
            vehicle_id=self.vehicle_id,
            driver_id=self.driver_id,
            duty_start=self.duty_start,
            duty_end=self.duty_end,
            start_km=self.start_km,
            end_km=self.end_km,
            segments=tuple(
                TripSegment(
                    segment_id=s.segment_id or new_id(),
                    category=s.category,
                    km=s.km,
                    revenue=s.revenue,
                )
                for s in self.segments
            ),
            fuel_entries=tuple(
                FuelEntry(
                    entry_id=f.entry_id or new_id(),
                    fuel_type=f.fuel_type,
                    quantity=f.quantity,
                    amount=f.amount,
                )
                for f in self.fuel_entries
            ),
            toll_other=self.toll_other,
        )


class VehicleIn(BaseModel):
    name: str
    plate_number: str
    model: str = ""
    current_odo: Decimal = Decimal("0")
    insurance_expiry: Optional[date] = None
    tax_expiry: Optional[date] = None
    permit_expiry: Optional[date] = None
    pollution_expiry: Optional[date] = None
    fitness_expiry: Optional[date] = None

    def to_vehicle(self, vehicle_id: str) -> Vehicle:
        return Vehicle(vehicle_id=vehicle_id, **self.model_dump())


class DriverIn(BaseModel):
    name: str
    mobile: str = ""
    license_number: str = ""
    license_expiry: Optional[date] = None


class MaintenanceIn(BaseModel):
    vehicle_id: str
    cost: Decimal
    maintenance_type: MaintenanceType = MaintenanceType.OTHERS
    description: str = ""
    performed_on: Optional[date] = None


def create_app(api_settings: Optional[ApiSettings] = None) -> FastAPI:
    api_settings = api_settings or ApiSettings()
    setup_logging(api_settings.log_level, api_settings.json_logs)

    app = FastAPI(title=api_settings.app_name)
    app.state.api_settings = api_settings
    app.state.conn = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TripValidationError)
    async def trip_validation_handler(request: Request, exc: TripValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    register_routes(app)
    return app


def get_conn(request: Request) -> sqlite3.Connection:
    """Open the store on first use and seed settings from the YAML file if empty."""
    state = request.app.state
    if state.conn is None:
        api_settings: ApiSettings = state.api_settings
        state.conn = db.initialize(api_settings.db_path)
        if api_settings.settings_file:
            seeded = SettingsService(state.conn).seed(load_settings_file(api_settings.settings_file))
            if seeded:
                logger.info("Seeded settings from %s", api_settings.settings_file)
        logger.info("Opened ledger store at %s", api_settings.db_path)
    return state.conn


def encode(obj: Any) -> Any:
    """JSON-ready payload with amounts as Decimal strings, like the settings documents."""
    return jsonable_encoder(obj, custom_encoder={Decimal: str})


def _settlement_out(settlement: Settlement) -> dict[str, Any]:
    return encode(
        {
            "segments": [
                {
                    "segment_id": s.segment.segment_id,
                    "category": s.segment.category.value,
                    "km": s.segment.km,
                    "revenue": s.segment.revenue,
                    "driver_share": s.driver_share,
                    "owner_share": s.owner_share,
                    "incentive": s.incentive,
                    "fine": s.fine,
                    "fuel_allowance": s.fuel_allowance,
                }
                for s in settlement.segments
            ],
            "total_revenue": settlement.total_revenue,
            "total_fuel_bill": settlement.total_fuel_bill,
            "total_driver_payout": settlement.total_driver_payout,
            "total_owner_share": settlement.total_owner_share,
        }
    )


def _trip_out(trip: Trip) -> dict[str, Any]:
    return encode(trip_to_dict(trip))


def _financials_out(financials: Any) -> dict[str, Any]:
    return encode(
        {
            "vehicle_id": financials.vehicle_id,
            "trip_count": financials.trip_count,
            "total_km": financials.total_km,
            "revenue": financials.revenue,
            "fuel_cost": financials.fuel_cost,
            "toll_other": financials.toll_other,
            "maintenance_cost": financials.maintenance_cost,
            "expenses": financials.expenses,
            "owner_profit": financials.owner_profit,
            "net_owner_profit": financials.net_owner_profit,
        }
    )


def register_routes(app: FastAPI) -> None:
    @app.post("/estimates")
    def create_estimate(payload: EstimateRequest, conn: sqlite3.Connection = Depends(get_conn)):
        settings = SettingsService(conn).current()
        result = estimate(payload.trip_type, payload.to_inputs(), settings.tariffs, settings.currency_symbol)
        return encode(
            {
                "trip_type": result.trip_type.value,
                "total": result.total,
                "line_items": [{"label": i.label, "amount": i.amount} for i in result.line_items],
            }
        )

    @app.post("/estimates/share")
    def share_estimate(payload: EstimateRequest, conn: sqlite3.Connection = Depends(get_conn)):
        settings = SettingsService(conn).current()
        inputs = payload.to_inputs()
        result = estimate(payload.trip_type, inputs, settings.tariffs, settings.currency_symbol)
        text = render_quote_text(result, inputs, settings.currency_symbol)
        return {
            "text": text,
            "plain_text": render_quote_text(result, inputs, settings.currency_symbol, markdown=False),
            "share_url": whatsapp_share_url(text),
        }

    @app.post("/trips/preview")
    def preview_trip(payload: TripIn, conn: sqlite3.Connection = Depends(get_conn)):
        return _settlement_out(TripService(conn).preview(payload.to_draft()))

    @app.post("/trips", status_code=201)
    def create_trip(payload: TripIn, conn: sqlite3.Connection = Depends(get_conn)):
        return _trip_out(TripService(conn).add_trip(payload.to_draft()))

    @app.put("/trips/{trip_id}")
    def update_trip(trip_id: str, payload: TripIn, conn: sqlite3.Connection = Depends(get_conn)):
        return _trip_out(TripService(conn).update_trip(trip_id, payload.to_draft()))

    @app.get("/trips")
    def list_trips(
        vehicle_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        sort_by: Literal["date", "revenue", "profit"] = "date",
        order: Literal["asc", "desc"] = "desc",
        conn: sqlite3.Connection = Depends(get_conn),
    ):
        query = TripQuery(
            vehicle_id=vehicle_id,
            driver_id=driver_id,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            order=order,
        )
        return [_trip_out(t) for t in TripService(conn).list_trips(query)]

    @app.get("/trips/export.xlsx")
    def export_trips(request: Request, conn: sqlite3.Connection = Depends(get_conn)):
        trips = TripService(conn).list_trips()
        export_dir = request.app.state.api_settings.export_dir
        export_path = TripLedgerExportService().generate_export(trips, export_dir / "trip-ledger.xlsx")
        return FileResponse(
            export_path,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename="trip-ledger.xlsx",
        )

    @app.get("/trips/{trip_id}")
    def get_trip(trip_id: str, conn: sqlite3.Connection = Depends(get_conn)):
        return _trip_out(TripService(conn).get_trip(trip_id))

    @app.get("/vehicles")
    def list_vehicles(conn: sqlite3.Connection = Depends(get_conn)):
        return encode(FleetService(conn).repo.list_vehicles())

    @app.post("/vehicles", status_code=201)
    def create_vehicle(payload: VehicleIn, conn: sqlite3.Connection = Depends(get_conn)):
        return encode(FleetService(conn).add_vehicle(payload.to_vehicle(new_id())))

    @app.put("/vehicles/{vehicle_id}")
    def update_vehicle(vehicle_id: str, payload: VehicleIn, conn: sqlite3.Connection = Depends(get_conn)):
        return encode(FleetService(conn).update_vehicle(payload.to_vehicle(vehicle_id)))

    @app.get("/vehicles/{vehicle_id}/financials")
    def get_vehicle_financials(vehicle_id: str, conn: sqlite3.Connection = Depends(get_conn)):
        fleet = FleetService(conn)
        vehicle = fleet.get_vehicle(vehicle_id)
        return _financials_out(
            vehicle_financials(vehicle, fleet.repo.list_trips(), fleet.repo.list_maintenance())
        )

    @app.get("/fleet/financials")
    def get_fleet_financials(conn: sqlite3.Connection = Depends(get_conn)):
        repo = FleetService(conn).repo
        rollup = fleet_financials(repo.list_vehicles(), repo.list_trips(), repo.list_maintenance())
        return [_financials_out(f) for f in rollup]

    @app.get("/drivers")
    def list_drivers(conn: sqlite3.Connection = Depends(get_conn)):
        return encode(FleetService(conn).repo.list_drivers())

    @app.post("/drivers", status_code=201)
    def create_driver(payload: DriverIn, conn: sqlite3.Connection = Depends(get_conn)):
        driver = Driver(driver_id=new_id(), **payload.model_dump())
        return encode(FleetService(conn).add_driver(driver))

    @app.delete("/drivers/{driver_id}", status_code=204)
    def delete_driver(driver_id: str, conn: sqlite3.Connection = Depends(get_conn)):
        FleetService(conn).delete_driver(driver_id)

    @app.get("/maintenance")
    def list_maintenance(
        vehicle_id: Optional[str] = None,
        maintenance_type: Optional[MaintenanceType] = None,
        conn: sqlite3.Connection = Depends(get_conn),
    ):
        return encode(FleetService(conn).list_maintenance(vehicle_id, maintenance_type))

    @app.post("/maintenance", status_code=201)
    def create_maintenance(payload: MaintenanceIn, conn: sqlite3.Connection = Depends(get_conn)):
        record = FleetService(conn).add_maintenance(
            payload.vehicle_id,
            payload.cost,
            payload.maintenance_type,
            payload.description,
            payload.performed_on,
        )
        return encode(record)

    @app.get("/settings")
    def get_settings(conn: sqlite3.Connection = Depends(get_conn)):
        return settings_to_dict(SettingsService(conn).current())

    @app.patch("/settings/tariffs/{group}")
    def patch_tariff(group: str, changes: dict[str, Decimal], conn: sqlite3.Connection = Depends(get_conn)):
        if group not in TARIFF_GROUPS:
            raise HTTPException(status_code=404, detail=f"Unknown tariff group: {group}")
        try:
            updated = SettingsService(conn).update_tariff(group, **changes)
        except KeyError as exc:
            raise HTTPException(status_code=422, detail=str(exc.args[0])) from exc
        return settings_to_dict(updated)

    @app.patch("/settings/logic")
    def patch_logic(changes: dict[str, Decimal], conn: sqlite3.Connection = Depends(get_conn)):
        try:
            updated = SettingsService(conn).update_logic(**changes)
        except KeyError as exc:
            raise HTTPException(status_code=422, detail=str(exc.args[0])) from exc
        return settings_to_dict(updated)

    @app.post("/settings/reset")
    def reset_settings(conn: sqlite3.Connection = Depends(get_conn)):
        return settings_to_dict(SettingsService(conn).reset_defaults())

    @app.get("/dashboard")
    def dashboard(conn: sqlite3.Connection = Depends(get_conn)):
        summary = dashboard_summary(TripService(conn).list_trips())
        return encode(
            {"revenue": summary.revenue, "profit": summary.profit, "expenses": summary.expenses}
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}


app = create_app()
