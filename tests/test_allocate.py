"""Tests for the captive allocation pass."""

from __future__ import annotations

import pytest

from captive_ledger.allocate import adjusted_take, shareholder_ceilings
from captive_ledger.units import normalize_consumption_unit
from tests.fixtures.allocation_inputs import (
    allocated,
    captive,
    consumption,
    production,
    remaining,
    run,
)


def test_single_shareholder_takes_demand_and_rest_lapses():
    result = run(
        [production("P1", c1=100)],
        [consumption("C1", c1=60)],
        captives=[captive("G1", "S1", 100)],
    )

    assert len(result.allocations) == 1
    record = result.allocations[0]
    assert record.key == ("P1", "C1", "082025")
    assert record.allocated["c1"] == pytest.approx(60)
    assert record.allocation_percentage == pytest.approx(100)
    assert record.generator_company_id == "G1"
    assert record.shareholder_company_id == "S1"
    assert result.debug["remainingProductionBeforeDisposal"] == pytest.approx(40)
    assert result.remaining_production == ()
    assert len(result.lapse_allocations) == 1
    assert result.lapse_allocations[0].allocated["c1"] == pytest.approx(40)
    assert result.banking_allocations == ()


def test_shareholder_ceilings_follow_percentages():
    result = run(
        [production("P1", c1=100)],
        [consumption("CA", "SA", c1=80), consumption("CB", "SB", c1=50)],
        captives=[captive("G1", "SA", 60), captive("G1", "SB", 40)],
    )

    assert allocated(result, "P1", "CA")["c1"] == pytest.approx(60)
    assert allocated(result, "P1", "CB")["c1"] == pytest.approx(40)
    assert remaining(result, "CA")["c1"] == pytest.approx(20)
    assert remaining(result, "CB")["c1"] == pytest.approx(10)
    assert result.lapse_allocations == ()


def test_ceiling_uses_group_production_before_any_shareholder_draws():
    result = run(
        [production("P1", c1=100)],
        [consumption("CB", "SB", c1=100), consumption("CA", "SA", c1=100)],
        captives=[captive("G1", "SB", 40), captive("G1", "SA", 60)],
    )

    assert allocated(result, "P1", "CA")["c1"] == pytest.approx(60)
    assert allocated(result, "P1", "CB")["c1"] == pytest.approx(40)


def test_oversubscribed_agreement_caps_at_total_production():
    result = run(
        [production("P1", c1=75, c4=20)],
        [consumption("C1", c1=200, c4=10)],
        captives=[captive("G1", "S1", 150)],
    )

    record = allocated(result, "P1", "C1")
    assert record["c1"] == pytest.approx(75)
    assert record["c4"] == pytest.approx(10)
    assert remaining(result, "C1")["c1"] == pytest.approx(125)


def test_ceiling_is_shared_across_a_shareholders_sites():
    result = run(
        [production("P1", c1=100)],
        [consumption("C1", "S1", c1=30), consumption("C2", "S1", c1=30), consumption("C3", "S2", c1=80)],
        captives=[captive("G1", "S1", 50), captive("G1", "S2", 50)],
    )

    assert allocated(result, "P1", "C1")["c1"] == pytest.approx(30)
    assert allocated(result, "P1", "C2")["c1"] == pytest.approx(20)
    assert allocated(result, "P1", "C3")["c1"] == pytest.approx(50)
    assert remaining(result, "C2")["c1"] == pytest.approx(10)


def test_priority_map_decides_who_is_served_first():
    result = run(
        [production("P1", c1=50)],
        [consumption("C1", c1=40), consumption("C2", c1=40)],
        captives=[captive("G1", "S1", 100)],
        consumption_site_priority_map={"C2": 1},
    )

    assert allocated(result, "P1", "C2")["c1"] == pytest.approx(40)
    assert allocated(result, "P1", "C1")["c1"] == pytest.approx(10)


def test_take_spreads_over_group_sites_oldest_first():
    result = run(
        [
            production("P2", c1=70, commission="2023-01-01"),
            production("P1", c1=30, commission="2018-01-01"),
        ],
        [consumption("C1", c1=50)],
        captives=[captive("G1", "S1", 100)],
    )

    assert allocated(result, "P1", "C1")["c1"] == pytest.approx(30)
    assert allocated(result, "P2", "C1")["c1"] == pytest.approx(20)
    lapse = {record.production_site_id: record.allocated["c1"] for record in result.lapse_allocations}
    assert lapse == {"P2": pytest.approx(50)}


def test_generator_without_agreements_is_skipped():
    result = run(
        [production("P1", "G1", c1=100), production("P9", "G9", c2=10)],
        [consumption("C1", c1=60, c2=5)],
        captives=[captive("G1", "S1", 100)],
    )

    assert [record.production_site_id for record in result.allocations] == ["P1"]
    assert remaining(result, "C1")["c2"] == pytest.approx(5)
    lapsed = {record.production_site_id for record in result.lapse_allocations}
    assert lapsed == {"P1", "P9"}


def test_fractional_ceiling_is_floored():
    result = run(
        [production("P1", c1=9)],
        [consumption("CA", "SA", c1=9), consumption("CB", "SB", c1=9)],
        captives=[captive("G1", "SA", 50), captive("G1", "SB", 50)],
    )

    assert allocated(result, "P1", "CA")["c1"] == pytest.approx(4)
    assert allocated(result, "P1", "CB")["c1"] == pytest.approx(4)
    assert result.lapse_allocations[0].allocated["c1"] == pytest.approx(1)


def test_injection_raises_take_and_ir_metadata_is_copied():
    result = run(
        [production("P1", c1=100)],
        [consumption("C1", c1=50, irType="injection", injection={"c1": 5})],
        captives=[captive("G1", "S1", 100)],
    )

    record = result.allocations[0]
    assert record.allocated["c1"] == pytest.approx(55)
    assert record.ir_type == "injection"
    assert record.injection == {"c1": 5.0}
    assert remaining(result, "C1") == {}


def test_reduction_lowers_take():
    result = run(
        [production("P1", c1=100)],
        [consumption("C1", c1=50, reduction_c1=20)],
        captives=[captive("G1", "S1", 100)],
    )

    assert allocated(result, "P1", "C1")["c1"] == pytest.approx(30)
    assert remaining(result, "C1")["c1"] == pytest.approx(20)


def test_adjusted_take_bounds():
    consumer = normalize_consumption_unit(
        {"consumptionSiteId": "C1", "c1": 50, "c2": 10, "injection": {"c1": 30}, "reduction": {"c2": 25}}
    )
    assert consumer is not None

    assert adjusted_take(consumer, "c1", 60) == pytest.approx(60)
    assert adjusted_take(consumer, "c1", 100) == pytest.approx(80)
    assert adjusted_take(consumer, "c2", 100) == pytest.approx(0)
    assert adjusted_take(consumer, "c3", 100) == pytest.approx(0)


def test_shareholder_ceilings_floor_each_period():
    ceilings = shareholder_ceilings({"c1": 101, "c2": 0, "c3": 10, "c4": 3, "c5": 99.9}, 33)
    assert ceilings == {"c1": 33.0, "c2": 0.0, "c3": 3.0, "c4": 0.0, "c5": 32.0}
