from .analytics import DashboardSummary, VehicleFinancials, dashboard_summary, fleet_financials, vehicle_financials
from .config import DEFAULT_SETTINGS, AppSettings, LogicSettings, TariffSettings, deep_merge
from .estimator import Estimate, EstimateInputs, LineItem, TripType, estimate
from .models import (
    Driver,
    FuelEntry,
    FuelType,
    MaintenanceRecord,
    MaintenanceType,
    SegmentCategory,
    Trip,
    TripDraft,
    TripSegment,
    Vehicle,
)
from .settlement import SegmentSettlement, Settlement, settle
from .ui import render_quote_text, whatsapp_share_url

__all__ = [
    "AppSettings",
    "DEFAULT_SETTINGS",
    "DashboardSummary",
    "Driver",
    "Estimate",
    "EstimateInputs",
    "FuelEntry",
    "FuelType",
    "LineItem",
    "LogicSettings",
    "MaintenanceRecord",
    "MaintenanceType",
    "SegmentCategory",
    "SegmentSettlement",
    "Settlement",
    "TariffSettings",
    "Trip",
    "TripDraft",
    "TripSegment",
    "TripType",
    "Vehicle",
    "VehicleFinancials",
    "dashboard_summary",
    "deep_merge",
    "estimate",
    "fleet_financials",
    "render_quote_text",
    "settle",
    "vehicle_financials",
    "whatsapp_share_url",
]
