"""Authoritative constants shared across the allocation modules."""

from __future__ import annotations

from .constants_overrides import as_bool, get_constant


PERIODS: tuple[str, ...] = ("c1", "c2", "c3", "c4", "c5")
PEAK_PERIODS: tuple[str, ...] = ("c2", "c3")
NON_PEAK_PERIODS: tuple[str, ...] = ("c1", "c4", "c5")

ALLOCATION = "ALLOCATION"
BANKING = "BANKING"
LAPSE = "LAPSE"
RECORD_TYPES: tuple[str, ...] = (ALLOCATION, BANKING, LAPSE)

# Consumption-side sentinels for records that have no consuming site.
BANKING_SITE_ID = "BANK"
BANKING_SITE_NAME = "Banking"
LAPSE_SITE_ID = "LAPSE"
LAPSE_SITE_NAME = "Lapsed"

ACTIVE_STATUS = "active"

PERCENT_TOTAL: int = get_constant("PERCENT_TOTAL", 100, int)
PERCENTAGE_TOL: float = get_constant("PERCENTAGE_TOL", 0.01, float)
FLOW_TOL: float = get_constant("FLOW_TOL", 1e-6, float)
DEFAULT_GENERATOR_COMPANY_ID: str = get_constant("DEFAULT_GENERATOR_COMPANY_ID", "1", str)
TRACE_ENABLED: bool = get_constant("TRACE_ENABLED", True, as_bool)


__all__ = [
    "PERIODS",
    "PEAK_PERIODS",
    "NON_PEAK_PERIODS",
    "ALLOCATION",
    "BANKING",
    "LAPSE",
    "RECORD_TYPES",
    "BANKING_SITE_ID",
    "BANKING_SITE_NAME",
    "LAPSE_SITE_ID",
    "LAPSE_SITE_NAME",
    "ACTIVE_STATUS",
    "PERCENT_TOTAL",
    "PERCENTAGE_TOL",
    "FLOW_TOL",
    "DEFAULT_GENERATOR_COMPANY_ID",
    "TRACE_ENABLED",
]
