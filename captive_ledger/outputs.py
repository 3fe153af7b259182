"""Tabular views of allocation results and bulk-upsert payloads."""
from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import pandas as pd

from captive_ledger.constants import (
    ALLOCATION,
    NON_PEAK_PERIODS,
    PEAK_PERIODS,
    PERIODS,
    RECORD_TYPES,
)
from captive_ledger.records import AllocationRecord
from captive_ledger.units import Unit

if TYPE_CHECKING:  # pragma: no cover
    from captive_ledger.calculator import AllocationResult

RECORD_COLUMNS: tuple[str, ...] = (
    "type",
    "month",
    "generator_company_id",
    "shareholder_company_id",
    "production_site_id",
    "production_site_name",
    "consumption_site_id",
    "consumption_site_name",
    "site_type",
    "source",
    "allocation_percentage",
    *PERIODS,
    "total",
)

UNIT_COLUMNS: tuple[str, ...] = (
    "kind",
    "site_id",
    "company_id",
    "site_name",
    "month",
    *PERIODS,
    "total",
)


def records_to_frame(records: Iterable[AllocationRecord]) -> pd.DataFrame:
    """Return one row per record with a column per period."""

    rows: list[dict[str, Any]] = []
    for record in records:
        row: dict[str, Any] = {
            "type": record.record_type,
            "month": record.month,
            "generator_company_id": record.generator_company_id,
            "shareholder_company_id": record.shareholder_company_id,
            "production_site_id": record.production_site_id,
            "production_site_name": record.production_site_name,
            "consumption_site_id": record.consumption_site_id,
            "consumption_site_name": record.consumption_site_name,
            "site_type": record.site_type,
            "source": record.source,
            "allocation_percentage": record.allocation_percentage,
        }
        for period in PERIODS:
            row[period] = float(record.allocated.get(period, 0.0))
        row["total"] = float(record.total)
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=list(RECORD_COLUMNS))
    return pd.DataFrame(rows, columns=list(RECORD_COLUMNS))


def units_to_frame(units: Iterable[Unit]) -> pd.DataFrame:
    """Return one row per unit with its remaining amount per period."""

    rows = [
        {
            "kind": unit.kind,
            "site_id": unit.site_id,
            "company_id": unit.company_id,
            "site_name": unit.site_name,
            "month": unit.month,
            **{period: float(unit.remaining.get(period, 0.0)) for period in PERIODS},
            "total": float(unit.total_remaining()),
        }
        for unit in units
    ]
    if not rows:
        return pd.DataFrame(columns=list(UNIT_COLUMNS))
    return pd.DataFrame(rows, columns=list(UNIT_COLUMNS))


def summarize_by_period(result: "AllocationResult") -> pd.DataFrame:
    """Return totals per record type with peak and off-peak subtotals.

    Every record type appears as a row even when the call produced none.
    """

    frame = records_to_frame(result.records())
    columns = [*PERIODS, "peak", "off_peak", "total"]
    if frame.empty:
        summary = pd.DataFrame(0.0, index=list(RECORD_TYPES), columns=columns)
    else:
        summary = frame.groupby("type")[list(PERIODS)].sum().reindex(list(RECORD_TYPES), fill_value=0.0)
        summary["peak"] = summary[list(PEAK_PERIODS)].sum(axis=1)
        summary["off_peak"] = summary[list(NON_PEAK_PERIODS)].sum(axis=1)
        summary["total"] = summary[list(PERIODS)].sum(axis=1)
        summary = summary[columns].astype(float)
    summary.index.name = "type"
    return summary


def _payload_pk(record: AllocationRecord) -> str:
    if record.record_type == ALLOCATION:
        return f"{record.generator_company_id}_{record.production_site_id}_{record.consumption_site_id}"
    return f"{record.generator_company_id}_{record.production_site_id}"


def to_persistence_payloads(records: Iterable[AllocationRecord]) -> list[dict[str, Any]]:
    """Return bulk-upsert items keyed the way the storage layer expects.

    ``pk`` is ``{generator}_{production}_{consumption}`` for allocations and
    ``{generator}_{production}`` for banking and lapse rows; ``sk`` is the
    month. Period amounts sit at the top level of each item.
    """

    payloads: list[dict[str, Any]] = []
    for record in records:
        item: dict[str, Any] = {
            "pk": _payload_pk(record),
            "sk": record.month,
            "type": record.record_type,
            "productionSiteId": record.production_site_id,
            "consumptionSiteId": record.consumption_site_id,
            "companyId": record.generator_company_id,
            "charge": 0,
            "version": 1,
        }
        if record.record_type == ALLOCATION:
            item["shareholderCompanyId"] = record.shareholder_company_id
            item["allocationPercentage"] = record.allocation_percentage
        else:
            item["bankingEnabled"] = record.banking_enabled
        for period in PERIODS:
            item[period] = float(record.allocated.get(period, 0.0))
        payloads.append(item)
    return payloads


__all__ = [
    "RECORD_COLUMNS",
    "UNIT_COLUMNS",
    "records_to_frame",
    "summarize_by_period",
    "to_persistence_payloads",
    "units_to_frame",
]
