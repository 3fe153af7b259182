"""Tests for post-run audits of allocation results."""

from __future__ import annotations

import dataclasses

import pytest

from captive_ledger.audits import run_audits
from tests.fixtures.allocation_inputs import banked, captive, consumption, production, run


def _result():
    return run(
        [
            production("P1", c1=100, c2=30, commission="2018-01-01"),
            production("P2", banking=True, c1=40, c4=12),
            production("P3", "G2", c5=9),
        ],
        [consumption("C1", "S1", c1=70, c4=20), consumption("C2", "S2", c1=90, c2=10)],
        banks=[banked("B1", c1=25), banked("P2", c4=3)],
        captives=[captive("G1", "S1", 2), captive("G1", "S2", 1), captive("G2", "S2", 100)],
    )


def test_clean_run_passes_every_audit():
    report = run_audits(_result())

    assert report["passed"] is True
    assert report["conservation"]["issues"] == []
    assert report["conservation"]["max_gap"] == pytest.approx(0.0, abs=1e-9)
    assert report["percentage_closure"]["passed"] is True
    assert report["non_negative"]["passed"] is True
    assert report["unique_keys"]["passed"] is True


def test_empty_run_passes():
    report = run_audits(run([], []))

    assert report["passed"] is True


def test_tampered_record_breaks_conservation():
    result = _result()
    result.lapse_allocations[0].allocated["c5"] += 5.0

    report = run_audits(result)

    assert report["passed"] is False
    issue = report["conservation"]["issues"][0]
    assert issue["production_site_id"] == result.lapse_allocations[0].production_site_id
    assert issue["period"] == "c5"
    assert issue["accounted"] - issue["supplied"] == pytest.approx(5.0)


def test_duplicate_keys_are_reported():
    result = _result()
    duplicated = dataclasses.replace(result, allocations=result.allocations + result.allocations[:1])

    report = run_audits(duplicated)

    assert report["unique_keys"]["passed"] is False
    assert report["unique_keys"]["issues"][0][0] == "ALLOCATION"


def test_negative_remaining_is_reported():
    result = _result()
    result.production_units[0].remaining["c1"] = -1.0

    report = run_audits(result)

    assert report["non_negative"]["passed"] is False
    assert report["non_negative"]["issues"][0]["kind"] == "remaining"


def test_record_drawing_past_unit_capacity_is_reported():
    result = _result()
    record = next(record for record in result.allocations if record.production_site_id == "P1")
    record.by_source["production"]["c1"] += 500.0

    report = run_audits(result)

    assert report["record_capacity"]["passed"] is False
    issue = report["record_capacity"]["issues"][0]
    assert issue["source"] == "production"
    assert issue["period"] == "c1"
    assert issue["capacity"] == pytest.approx(100)
