from decimal import Decimal

import pytest

from cab_ledger.config import LogicSettings
from cab_ledger.models import FuelEntry, FuelType, SegmentCategory, TripSegment, money
from cab_ledger.settlement import _SETTLERS, settle

LOGIC = LogicSettings()


def segment(category, revenue, km=0, segment_id="s1"):
    return TripSegment(segment_id, SegmentCategory(category), Decimal(str(km)), Decimal(str(revenue)))


def test_uber_segment_over_target_distance_is_fined():
    result = settle([segment("uber", 1000)], [], Decimal("0"), LOGIC, Decimal("60"))
    settled = result.segments[0]

    assert money(settled.target_distance) == Decimal("52.63")
    assert money(settled.efficiency_gap) == Decimal("7.37")
    assert money(settled.fine) == Decimal("14.74")
    assert settled.incentive == 0
    assert money(settled.driver_share) == Decimal("585.26")
    assert money(settled.owner_share) == Decimal("414.74")
    assert settled.fuel_allowance == 0


def test_uber_segment_under_target_distance_earns_incentive():
    result = settle([segment("uber", 1000)], [], Decimal("0"), LOGIC, Decimal("40"))
    settled = result.segments[0]

    assert settled.fine == 0
    assert money(settled.incentive) == Decimal("25.26")
    assert money(settled.driver_share) == Decimal("625.26")
    assert settled.driver_share + settled.owner_share == Decimal("1000")


def test_uber_segment_exactly_at_target_yield_is_neutral():
    result = settle([segment("uber", 190)], [], Decimal("0"), LOGIC, Decimal("10"))
    settled = result.segments[0]

    assert settled.incentive == 0
    assert settled.fine == 0
    assert settled.driver_share == Decimal("114")


def test_zero_target_yield_treats_every_km_as_excess():
    logic = LogicSettings(target_yield=Decimal("0"))
    result = settle([segment("uber", 500)], [], Decimal("0"), logic, Decimal("30"))
    settled = result.segments[0]

    assert settled.target_distance == 0
    assert settled.fine == Decimal("60")
    assert settled.driver_share == Decimal("240")


@pytest.mark.parametrize(
    "category,share",
    [("personal", Decimal("25")), ("other", Decimal("30"))],
)
def test_owner_booked_segments_split_revenue_exactly(category, share):
    result = settle([segment(category, "1234.57")], [], Decimal("0"), LOGIC, Decimal("37.3"))
    settled = result.segments[0]

    assert settled.driver_share == Decimal("1234.57") * share / 100
    assert settled.fuel_allowance == Decimal("149.2")
    assert settled.owner_share + settled.driver_share + settled.fuel_allowance == Decimal("1234.57")
    assert settled.incentive == settled.fine == 0


def test_single_segment_km_is_replaced_by_total_distance():
    original = segment("personal", 1000, km=5)
    result = settle([original], [], Decimal("0"), LOGIC, Decimal("50"))

    assert result.segments[0].segment.km == Decimal("50")
    assert original.km == Decimal("5")
    assert result.segments[0].owner_share == Decimal("550")


def test_multi_segment_km_is_kept_and_totals_aggregate():
    segments = [
        segment("uber", 1400, km=70, segment_id="a"),
        segment("personal", 1500, km=50, segment_id="b"),
    ]
    fuel = [
        FuelEntry("f1", FuelType.CNG, Decimal("8"), Decimal("650")),
        FuelEntry("f2", FuelType.PETROL, Decimal("5"), Decimal("520")),
    ]
    result = settle(segments, fuel, Decimal("100"), LOGIC, Decimal("999"))

    assert [s.segment.km for s in result.segments] == [Decimal("70"), Decimal("50")]
    assert result.total_revenue == Decimal("2900")
    assert result.total_fuel_bill == Decimal("1170")
    assert result.total_driver_payout == sum(s.driver_share for s in result.segments)
    assert result.total_owner_share == sum(s.owner_share for s in result.segments) - Decimal("100")


def test_fuel_spend_does_not_change_the_split():
    without_fuel = settle([segment("personal", 800)], [], Decimal("0"), LOGIC, Decimal("40"))
    with_fuel = settle(
        [segment("personal", 800)],
        [FuelEntry("f1", FuelType.CNG, Decimal("10"), Decimal("900"))],
        Decimal("0"),
        LOGIC,
        Decimal("40"),
    )

    assert with_fuel.total_owner_share == without_fuel.total_owner_share
    assert with_fuel.total_fuel_bill == Decimal("900")


def test_settling_twice_gives_identical_results():
    segments = [segment("uber", 1000, km=60, segment_id="a"), segment("other", 300, km=12, segment_id="b")]
    fuel = [FuelEntry("f1", FuelType.CNG, Decimal("4"), Decimal("350"))]

    first = settle(segments, fuel, Decimal("25"), LOGIC, Decimal("72"))
    second = settle(segments, fuel, Decimal("25"), LOGIC, Decimal("72"))

    assert first == second


def test_every_category_has_a_settlement_rule():
    assert set(_SETTLERS) == set(SegmentCategory)


def test_unknown_category_text_parses_as_other():
    assert SegmentCategory.parse("airport") is SegmentCategory.OTHER
    assert SegmentCategory.parse("Uber") is SegmentCategory.UBER
