"""Tests for the banking pass and carry-forward of unused banked units."""

from __future__ import annotations

import pytest

from captive_ledger.audits import run_audits
from captive_ledger.banking import round_half_up
from captive_ledger.records import MIXED
from captive_ledger.units import BANKED, PRODUCTION
from tests.fixtures.allocation_inputs import (
    allocated,
    banked,
    captive,
    consumption,
    production,
    remaining,
    run,
)


def test_banked_units_cover_demand_left_after_captive_pass():
    result = run(
        [production("P1", c1=10)],
        [consumption("C1", c1=30)],
        banks=[banked("B1", c1=30)],
        captives=[captive("G1", "S1", 100)],
    )

    assert allocated(result, "P1", "C1")["c1"] == pytest.approx(10)
    assert allocated(result, "B1", "C1")["c1"] == pytest.approx(20)
    assert remaining(result, "C1") == {}

    banking_record = next(record for record in result.allocations if record.production_site_id == "B1")
    assert banking_record.source == BANKED
    assert banking_record.allocation_percentage == pytest.approx(100)

    assert len(result.banking_allocations) == 1
    carried = result.banking_allocations[0]
    assert carried.production_site_id == "B1"
    assert carried.consumption_site_id == "BANK"
    assert carried.consumption_site_name == "Banking"
    assert carried.allocated["c1"] == pytest.approx(10)
    assert result.lapse_allocations == ()


def test_banking_ignores_captive_agreements():
    result = run(
        [],
        [consumption("C1", "S9", c2=15)],
        banks=[banked("B1", "G1", c2=40)],
        captives=[captive("G1", "S1", 100)],
    )

    assert allocated(result, "B1", "C1")["c2"] == pytest.approx(15)
    assert result.banking_allocations[0].allocated["c2"] == pytest.approx(25)


def test_banked_units_of_one_generator_share_need_equally():
    result = run(
        [],
        [consumption("C1", c1=50)],
        banks=[banked("B1", c1=100), banked("B2", c1=100)],
    )

    assert allocated(result, "B1", "C1")["c1"] == pytest.approx(25)
    assert allocated(result, "B2", "C1")["c1"] == pytest.approx(13)
    assert remaining(result, "C1")["c1"] == pytest.approx(12)
    carried = {record.production_site_id: record.allocated["c1"] for record in result.banking_allocations}
    assert carried == {"B1": pytest.approx(75), "B2": pytest.approx(87)}


def test_banked_units_from_another_month_are_not_used():
    result = run(
        [],
        [consumption("C1", c1=20)],
        banks=[banked("B1", c1=50, month="072025")],
    )

    assert result.allocations == ()
    assert result.banking_allocations == ()
    assert remaining(result, "C1")["c1"] == pytest.approx(20)
    assert result.debug["ineligibleBankingUnits"] == 1


def test_leftover_from_banking_enabled_site_joins_banked_record():
    result = run(
        [production("P1", banking=True, c1=100)],
        [consumption("C1", c1=30)],
        banks=[banked("P1", c1=5)],
        captives=[captive("G1", "S1", 100)],
    )

    assert allocated(result, "P1", "C1")["c1"] == pytest.approx(30)
    assert len(result.banking_allocations) == 1
    record = result.banking_allocations[0]
    assert record.key == ("P1", "082025")
    assert record.allocated["c1"] == pytest.approx(75)
    assert result.lapse_allocations == ()
    assert result.debug["remainingProductionBeforeDisposal"] == pytest.approx(70)


def test_banked_unit_without_company_uses_default_generator():
    result = run(
        [],
        [consumption("C1", c1=4)],
        banks=[{"productionSiteId": "B1", "c1": 10, "month": "082025"}],
    )

    assert result.banking_allocations[0].generator_company_id == "1"
    assert result.banked_units[0].company_id == "1"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(12.5, 13.0), (12.49, 12.0), (0.5, 1.0), (0.0, 0.0), (7.0, 7.0)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_site_bank_and_production_feeding_one_consumer_are_kept_apart():
    result = run(
        [production("P1", banking=True, c1=100)],
        [consumption("C1", c1=130)],
        banks=[banked("P1", c1=50)],
        captives=[captive("G1", "S1", 100)],
    )

    assert len(result.allocations) == 1
    record = result.allocations[0]
    assert record.allocated["c1"] == pytest.approx(130)
    assert record.source == MIXED
    assert record.by_source[PRODUCTION]["c1"] == pytest.approx(100)
    assert record.by_source[BANKED]["c1"] == pytest.approx(30)
    assert record.to_dict()["allocatedBySource"][BANKED]["c1"] == pytest.approx(30)
    assert result.banking_allocations[0].allocated["c1"] == pytest.approx(20)

    report = run_audits(result)
    assert report["record_capacity"]["passed"] is True
    assert report["passed"] is True
