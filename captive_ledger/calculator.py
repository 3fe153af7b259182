"""Monthly allocation entry point."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from captive_ledger.allocate import run_captive_pass
from captive_ledger.banking import carry_forward_banked, run_banking_pass
from captive_ledger.captive import CaptiveGroup, build_captive_map
from captive_ledger.grouping import group_producers, order_by_commission_date, order_consumers
from captive_ledger.lapse import dispose_leftover_production
from captive_ledger.records import AllocationRecord, RecordBook
from captive_ledger.settings import AllocationSettings, default_settings
from captive_ledger.state import AllocationState, index_units
from captive_ledger.trace import AllocationTrace, TraceEvent
from captive_ledger.units import (
    Unit,
    coerce_text,
    coerce_timestamp,
    normalize_banking_unit,
    normalize_consumption_unit,
    normalize_production_unit,
)

LOGGER = logging.getLogger(__name__)

_MONTH_PATTERN = re.compile(r"^(0[1-9]|1[0-2])\d{4}$")


@dataclass(frozen=True)
class AllocationResult:
    """Everything one allocation call produced.

    Units are copies taken after the final pass; mutating them does not
    affect anything the engine holds.
    """

    month: str
    allocations: tuple[AllocationRecord, ...]
    banking_allocations: tuple[AllocationRecord, ...]
    lapse_allocations: tuple[AllocationRecord, ...]
    remaining_production: tuple[Unit, ...]
    remaining_consumption: tuple[Unit, ...]
    debug: Mapping[str, Any]
    captive_map: Mapping[str, CaptiveGroup] = field(default_factory=dict)
    production_units: tuple[Unit, ...] = ()
    banked_units: tuple[Unit, ...] = ()
    events: tuple[TraceEvent, ...] = ()

    def records(self) -> list[AllocationRecord]:
        return [*self.allocations, *self.banking_allocations, *self.lapse_allocations]

    def to_dict(self) -> dict[str, Any]:
        def _unit(unit: Unit) -> dict[str, Any]:
            return {
                "siteId": unit.site_id,
                "companyId": unit.company_id,
                "siteName": unit.site_name,
                "type": unit.site_type,
                "month": unit.month,
                "remaining": dict(unit.remaining),
            }

        return {
            "allocations": [record.to_dict() for record in self.allocations],
            "bankingAllocations": [record.to_dict() for record in self.banking_allocations],
            "lapseAllocations": [record.to_dict() for record in self.lapse_allocations],
            "remainingProduction": [_unit(unit) for unit in self.remaining_production],
            "remainingConsumption": [_unit(unit) for unit in self.remaining_consumption],
            "debug": dict(self.debug),
        }


def _require_records(name: str, value: Any) -> Sequence[Any]:
    if isinstance(value, (list, tuple)):
        return value
    raise TypeError(f"{name} must be a list of records, got {type(value).__name__}")


def resolve_month(month: Any, settings: AllocationSettings) -> str:
    """Return ``month`` as ``MMYYYY``, defaulting to the clock's month."""

    text = coerce_text(month)
    if not text:
        fallback = settings.current_month()
        LOGGER.warning("No allocation month supplied; defaulting to %s", fallback)
        return fallback
    if not _MONTH_PATTERN.match(text):
        raise ValueError(f"month must be MMYYYY with a month of 01-12, got {month!r}")
    return text


def _normalize_all(
    records: Sequence[Any],
    normalizer: Callable[[Any], Unit | None],
    stage: str,
    trace: AllocationTrace,
) -> list[Unit]:
    units: list[Unit] = []
    for index, raw in enumerate(records):
        unit = normalizer(raw)
        if unit is None:
            trace.warn(stage, f"skipped {stage} record {index}: not a record or missing site id")
            continue
        units.append(unit)
    return units


def backfill_from_sites(units: Sequence[Unit], production_sites: Sequence[Any]) -> None:
    """Fill missing generator company ids and commission dates from site metadata."""

    sites: dict[str, Mapping[str, Any]] = {}
    for site in production_sites:
        if not isinstance(site, Mapping):
            continue
        site_id = coerce_text(site.get("productionSiteId") or site.get("id"))
        if site_id:
            sites.setdefault(site_id, site)

    for unit in units:
        site = sites.get(unit.site_id)
        if site is None:
            continue
        if not unit.company_id:
            unit.company_id = coerce_text(site.get("generatorCompanyId") or site.get("companyId"))
        if unit.commission_date is None:
            unit.commission_date = coerce_timestamp(site.get("commissionDate"))


def _eligible_banked(units: list[Unit], month: str, trace: AllocationTrace) -> list[Unit]:
    eligible: list[Unit] = []
    for unit in units:
        if unit.month == month:
            eligible.append(unit)
        else:
            trace.warn("banking_month", "banked unit outside target month", site=unit.site_id, month=unit.month)
    return eligible


def calculate_allocations(
    production_units: Sequence[Any],
    consumption_units: Sequence[Any],
    banking_units: Sequence[Any],
    captive_data: Sequence[Any],
    month: str | None = None,
    production_sites: Sequence[Any] | None = None,
    consumption_site_priority_map: Mapping[str, Any] | None = None,
    *,
    settings: AllocationSettings | None = None,
    trace: AllocationTrace | None = None,
) -> AllocationResult:
    """Allocate one month of production to consumption sites.

    Parameters
    ----------
    production_units, consumption_units, banking_units, captive_data:
        Raw records as returned by the persistence layer. Each must be a list
        (or tuple); malformed entries inside it are skipped with a warning.
    month:
        Target month as ``MMYYYY``. Missing months default to the current
        month of ``settings.clock``.
    production_sites:
        Site metadata used only to backfill generator company ids and
        commission dates.
    consumption_site_priority_map:
        ``consumptionSiteId -> priority``; lower numbers are served first.
    settings:
        Policy values; defaults to :func:`captive_ledger.settings.default_settings`.
    trace:
        Event collector; one is created when omitted.

    Returns
    -------
    AllocationResult
        Records by type, leftover units and diagnostic counts.
    """

    production_units = _require_records("production_units", production_units)
    consumption_units = _require_records("consumption_units", consumption_units)
    banking_units = _require_records("banking_units", banking_units)
    captive_data = _require_records("captive_data", captive_data)
    if production_sites is None:
        production_sites = ()
    production_sites = _require_records("production_sites", production_sites)
    if consumption_site_priority_map is not None and not isinstance(consumption_site_priority_map, Mapping):
        raise TypeError(
            "consumption_site_priority_map must be a mapping, got "
            f"{type(consumption_site_priority_map).__name__}"
        )

    if settings is None:
        settings = default_settings()
    if trace is None:
        trace = AllocationTrace(enabled=settings.trace_enabled)
    month = resolve_month(month, settings)

    LOGGER.info(
        "Calculating allocations for %s: %d production, %d consumption, %d banking, %d captive records",
        month,
        len(production_units),
        len(consumption_units),
        len(banking_units),
        len(captive_data),
    )

    producers = _normalize_all(production_units, normalize_production_unit, "production", trace)
    consumers = _normalize_all(consumption_units, normalize_consumption_unit, "consumption", trace)
    banked = _normalize_all(banking_units, normalize_banking_unit, "banking", trace)
    backfill_from_sites(producers, production_sites)

    producer_arena = index_units(order_by_commission_date(producers))
    consumer_arena = index_units(consumers)
    banked_arena = index_units(_eligible_banked(banked, month, trace))

    state = AllocationState(
        month=month,
        book=RecordBook(month, settings.clock()),
        producers=producer_arena,
        consumers=consumer_arena,
        banked=banked_arena,
        producer_groups=group_producers(
            producer_arena.values(), default_generator_id=settings.default_generator_company_id
        ),
        consumer_order=order_consumers(list(consumer_arena.values()), consumption_site_priority_map),
    )
    for unit in banked_arena.values():
        if not unit.company_id:
            unit.company_id = settings.default_generator_company_id

    captive_map = build_captive_map(captive_data, tolerance=settings.percentage_tolerance, trace=trace)

    run_captive_pass(state, captive_map, trace=trace)
    run_banking_pass(state, trace=trace)
    carry_forward_banked(state, trace=trace)
    leftover_before_disposal = state.remaining_production_total()
    dispose_leftover_production(state, trace=trace)

    allocations = state.book.allocations
    banking_records = state.book.banking_records
    lapse_records = state.book.lapse_records
    remaining_production = state.remaining_production()
    remaining_consumption = state.remaining_consumption()

    debug = {
        "totalAllocations": len(allocations),
        "totalLapseAllocations": len(lapse_records),
        "totalBankingAllocations": len(banking_records),
        "remainingProduction": len(remaining_production),
        "remainingConsumption": len(remaining_consumption),
        "totalAllocated": sum(record.total for record in allocations),
        "remainingProductionBeforeDisposal": leftover_before_disposal,
        "skippedProductionUnits": trace.warning_count("production"),
        "skippedConsumptionUnits": trace.warning_count("consumption"),
        "skippedBankingUnits": trace.warning_count("banking"),
        "skippedCaptiveEntries": trace.warning_count("captive"),
        "ineligibleBankingUnits": trace.warning_count("banking_month"),
    }
    LOGGER.info("Allocation summary for %s: %s", month, debug)

    return AllocationResult(
        month=month,
        allocations=tuple(allocations),
        banking_allocations=tuple(banking_records),
        lapse_allocations=tuple(lapse_records),
        remaining_production=tuple(unit.snapshot() for unit in remaining_production),
        remaining_consumption=tuple(unit.snapshot() for unit in remaining_consumption),
        debug=debug,
        captive_map=captive_map,
        production_units=tuple(unit.snapshot() for unit in state.production_units()),
        banked_units=tuple(unit.snapshot() for unit in state.banked.values()),
        events=trace.events,
    )


__all__ = ["AllocationResult", "backfill_from_sites", "calculate_allocations", "resolve_month"]
