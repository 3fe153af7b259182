"""Builders for raw allocation inputs shared across the test suite."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from captive_ledger.calculator import AllocationResult, calculate_allocations
from captive_ledger.settings import AllocationSettings

MONTH = "082025"
FIXED_NOW = datetime(2025, 8, 15, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def fixed_settings(**overrides: Any) -> AllocationSettings:
    return AllocationSettings(clock=fixed_clock).with_overrides(**overrides)


def production(
    site_id: str,
    company: str | None = "G1",
    *,
    month: str = MONTH,
    banking: bool = False,
    commission: str | None = None,
    **fields: Any,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "productionSiteId": site_id,
        "siteName": f"Plant {site_id}",
        "type": "WIND" if banking else "SOLAR",
        "month": month,
        "banking": 1 if banking else 0,
    }
    if company is not None:
        record["generatorCompanyId"] = company
    if commission is not None:
        record["commissionDate"] = commission
    record.update(fields)
    return record


def consumption(site_id: str, company: str = "S1", *, month: str = MONTH, **fields: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "consumptionSiteId": site_id,
        "siteName": f"Factory {site_id}",
        "shareholderCompanyId": company,
        "month": month,
    }
    record.update(fields)
    return record


def banked(site_id: str, company: str = "G1", *, month: str = MONTH, **fields: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "productionSiteId": site_id,
        "siteName": f"Plant {site_id}",
        "companyId": company,
        "month": month,
    }
    record.update(fields)
    return record


def captive(generator: str, shareholder: str, percentage: Any, status: str = "Active") -> dict[str, Any]:
    return {
        "generatorCompanyId": generator,
        "shareholderCompanyId": shareholder,
        "allocationPercentage": percentage,
        "allocationStatus": status,
    }


def run(
    productions: Iterable[Any],
    consumptions: Iterable[Any],
    banks: Iterable[Any] = (),
    captives: Iterable[Any] = (),
    **kwargs: Any,
) -> AllocationResult:
    kwargs.setdefault("month", MONTH)
    kwargs.setdefault("settings", fixed_settings())
    return calculate_allocations(
        list(productions),
        list(consumptions),
        list(banks),
        list(captives),
        **kwargs,
    )


def allocated(result: AllocationResult, production_site: str, consumption_site: str) -> dict[str, float]:
    for record in result.allocations:
        if record.production_site_id == production_site and record.consumption_site_id == consumption_site:
            return dict(record.allocated)
    raise AssertionError(f"no allocation {production_site} -> {consumption_site}")


def remaining(result: AllocationResult, site_id: str) -> dict[str, float]:
    for unit in result.remaining_consumption:
        if unit.site_id == site_id:
            return dict(unit.remaining)
    return {}
