from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Dict, Sequence, Tuple

from .config import LogicSettings
from .models import ZERO, FuelEntry, SegmentCategory, TripSegment, as_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class SegmentSettlement:
    segment: TripSegment
    driver_share: Decimal
    owner_share: Decimal
    incentive: Decimal = ZERO
    fine: Decimal = ZERO
    fuel_allowance: Decimal = ZERO
    target_distance: Decimal = ZERO
    efficiency_gap: Decimal = ZERO


@dataclass(frozen=True)
class Settlement:
    segments: Tuple[SegmentSettlement, ...]
    total_revenue: Decimal
    total_fuel_bill: Decimal
    total_driver_payout: Decimal
    total_owner_share: Decimal


def apply_total_distance(segments: Sequence[TripSegment], total_km: Decimal) -> Tuple[TripSegment, ...]:
    """A lone segment always covers the whole odometer distance."""
    if len(segments) == 1:
        return (replace(segments[0], km=as_decimal(total_km)),)
    return tuple(segments)


def settle(
    segments: Sequence[TripSegment],
    fuel_entries: Sequence[FuelEntry],
    toll_other: Decimal,
    logic: LogicSettings,
    total_km: Decimal,
) -> Settlement:
    """Split each segment's revenue between driver and owner.

    App-dispatched (uber) segments pay the driver a share adjusted by an
    incentive or fine against ``logic.target_yield``; the driver bears fuel, so
    the owner keeps the rest. Personal and other segments pay a flat share and
    charge the owner an imputed fuel allowance per km. Actual fuel spend is
    totalled separately and does not enter the split. Toll/other expense comes
    off the owner's share once per trip.
    """
    settled = tuple(
        _SETTLERS[segment.category](segment, logic)
        for segment in apply_total_distance(segments, total_km)
    )

    total_revenue = sum((s.segment.revenue for s in settled), ZERO)
    total_fuel_bill = sum((as_decimal(f.amount) for f in fuel_entries), ZERO)
    total_driver_payout = sum((s.driver_share for s in settled), ZERO)
    total_owner_share = sum((s.owner_share for s in settled), ZERO) - as_decimal(toll_other)

    logger.debug(
        "Settled %d segment(s): revenue=%s driver=%s owner=%s",
        len(settled),
        total_revenue,
        total_driver_payout,
        total_owner_share,
    )
    return Settlement(
        segments=settled,
        total_revenue=total_revenue,
        total_fuel_bill=total_fuel_bill,
        total_driver_payout=total_driver_payout,
        total_owner_share=total_owner_share,
    )


def _settle_app_segment(segment: TripSegment, logic: LogicSettings) -> SegmentSettlement:
    revenue = segment.revenue
    base_share = revenue * logic.uber_driver_share / HUNDRED

    target_distance = revenue / logic.target_yield if logic.target_yield > 0 else ZERO
    efficiency_gap = segment.km - target_distance

    incentive = fine = ZERO
    if efficiency_gap > 0:
        fine = efficiency_gap * logic.fine_rate
    else:
        incentive = abs(efficiency_gap) * logic.incentive_rate

    driver_share = base_share + incentive - fine
    return SegmentSettlement(
        segment=segment,
        driver_share=driver_share,
        owner_share=revenue - driver_share,
        incentive=incentive,
        fine=fine,
        target_distance=target_distance,
        efficiency_gap=efficiency_gap,
    )


def _owner_booked_settler(share_field: str) -> Callable[[TripSegment, LogicSettings], SegmentSettlement]:
    def settle_segment(segment: TripSegment, logic: LogicSettings) -> SegmentSettlement:
        driver_share = segment.revenue * getattr(logic, share_field) / HUNDRED
        fuel_allowance = segment.km * logic.fuel_allowance_rate
        return SegmentSettlement(
            segment=segment,
            driver_share=driver_share,
            owner_share=segment.revenue - driver_share - fuel_allowance,
            fuel_allowance=fuel_allowance,
        )

    return settle_segment


_SETTLERS: Dict[SegmentCategory, Callable[[TripSegment, LogicSettings], SegmentSettlement]] = {
    SegmentCategory.UBER: _settle_app_segment,
    SegmentCategory.PERSONAL: _owner_booked_settler("personal_driver_share"),
    SegmentCategory.OTHER: _owner_booked_settler("other_driver_share"),
}

_missing = set(SegmentCategory) - set(_SETTLERS)
if _missing:
    raise RuntimeError(f"No settlement rule for categories: {sorted(c.value for c in _missing)}")


__all__ = ["SegmentSettlement", "Settlement", "apply_total_distance", "settle"]
