"""Post-run audit checks for allocation results."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

import pandas as pd

from captive_ledger.constants import FLOW_TOL, PERCENT_TOTAL, PERIODS
from captive_ledger.outputs import records_to_frame
from captive_ledger.records import source_of
from captive_ledger.units import Unit

if TYPE_CHECKING:  # pragma: no cover
    from captive_ledger.calculator import AllocationResult

DEFAULT_TOLERANCE = FLOW_TOL


def _supply_by_site(units: Iterable[Unit]) -> pd.DataFrame:
    rows = [
        {"production_site_id": unit.site_id, **{period: unit.original.get(period, 0.0) for period in PERIODS}}
        for unit in units
    ]
    if not rows:
        return pd.DataFrame(columns=list(PERIODS), dtype=float)
    return pd.DataFrame(rows).groupby("production_site_id")[list(PERIODS)].sum()


def _allocated_by_site(result: "AllocationResult") -> pd.DataFrame:
    frame = records_to_frame(result.records())
    if frame.empty:
        return pd.DataFrame(columns=list(PERIODS), dtype=float)
    return frame.groupby("production_site_id")[list(PERIODS)].sum()


def _conservation(result: "AllocationResult", tolerance: float) -> dict[str, Any]:
    supply = _supply_by_site([*result.production_units, *result.banked_units])
    allocated = _allocated_by_site(result)
    sites = sorted(set(supply.index) | set(allocated.index))
    supply = supply.reindex(sites, fill_value=0.0).astype(float)
    allocated = allocated.reindex(sites, fill_value=0.0).astype(float)

    section: dict[str, Any] = {"passed": True, "max_gap": 0.0, "issues": []}
    if not sites:
        return section
    gaps = (allocated - supply).abs()
    section["max_gap"] = float(gaps.to_numpy().max())
    for site, row in gaps.iterrows():
        for period in PERIODS:
            if row[period] > tolerance:
                section["passed"] = False
                section["issues"].append(
                    {
                        "production_site_id": site,
                        "period": period,
                        "supplied": float(supply.at[site, period]),
                        "accounted": float(allocated.at[site, period]),
                    }
                )
    return section


def _percentage_closure(result: "AllocationResult") -> dict[str, Any]:
    section: dict[str, Any] = {"passed": True, "issues": []}
    for generator_id, group in result.captive_map.items():
        total = sum(group.whole_percentages().values())
        if group.shareholders and total != PERCENT_TOTAL:
            section["passed"] = False
            section["issues"].append({"generator_company_id": generator_id, "total": total})
    return section


def _non_negative(result: "AllocationResult", tolerance: float) -> dict[str, Any]:
    section: dict[str, Any] = {"passed": True, "issues": []}
    units = [*result.production_units, *result.banked_units, *result.remaining_consumption]
    for unit in units:
        for period in PERIODS:
            if unit.remaining.get(period, 0.0) < -tolerance:
                section["passed"] = False
                section["issues"].append({"site_id": unit.site_id, "period": period, "kind": "remaining"})
    for record in result.records():
        for period in PERIODS:
            if record.allocated.get(period, 0.0) < -tolerance:
                section["passed"] = False
                section["issues"].append({"site_id": record.production_site_id, "period": period, "kind": "allocated"})
    return section


def _record_capacity(result: "AllocationResult", tolerance: float) -> dict[str, Any]:
    section: dict[str, Any] = {"passed": True, "issues": []}
    capacity: dict[tuple[str, str], dict[str, float]] = {}
    for unit in [*result.production_units, *result.banked_units]:
        supplied = capacity.setdefault((source_of(unit), unit.site_id), dict.fromkeys(PERIODS, 0.0))
        for period in PERIODS:
            supplied[period] += unit.original.get(period, 0.0)
    for record in result.allocations:
        for origin, amounts in record.by_source.items():
            supplied = capacity.get((origin, record.production_site_id), {})
            for period in PERIODS:
                if amounts.get(period, 0.0) > supplied.get(period, 0.0) + tolerance:
                    section["passed"] = False
                    section["issues"].append(
                        {
                            "key": list(record.key),
                            "source": origin,
                            "period": period,
                            "allocated": float(amounts[period]),
                            "capacity": float(supplied.get(period, 0.0)),
                        }
                    )
    return section


def _unique_keys(result: "AllocationResult") -> dict[str, Any]:
    section: dict[str, Any] = {"passed": True, "issues": []}
    seen: set[tuple[str, ...]] = set()
    for record in result.records():
        key = (record.record_type, *record.key)
        if key in seen:
            section["passed"] = False
            section["issues"].append(list(key))
        seen.add(key)
    return section


def run_audits(result: "AllocationResult", *, tolerance: float = DEFAULT_TOLERANCE) -> dict[str, Any]:
    """Return a structured audit report for an allocation result.

    Sections: ``conservation`` (every supplied unit is accounted for by an
    allocation, banking or lapse record), ``percentage_closure`` (whole-number
    captive shares sum to 100), ``non_negative``, ``record_capacity`` (no
    allocation draws more from a production or banked unit than it supplied)
    and ``unique_keys``.
    """

    report: dict[str, Any] = {
        "conservation": _conservation(result, tolerance),
        "percentage_closure": _percentage_closure(result),
        "non_negative": _non_negative(result, tolerance),
        "record_capacity": _record_capacity(result, tolerance),
        "unique_keys": _unique_keys(result),
    }
    report["passed"] = all(section["passed"] for section in report.values())
    return report


__all__ = ["DEFAULT_TOLERANCE", "run_audits"]
