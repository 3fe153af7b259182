"""Monthly captive energy allocation engine public API."""

from __future__ import annotations

from captive_ledger.audits import run_audits
from captive_ledger.calculator import AllocationResult, calculate_allocations
from captive_ledger.captive import CaptiveGroup, ShareholderShare, build_captive_map
from captive_ledger.percentages import largest_remainder
from captive_ledger.records import AllocationRecord
from captive_ledger.settings import AllocationSettings
from captive_ledger.trace import AllocationTrace, TraceEvent
from captive_ledger.units import Unit

__version__ = "0.1.0"

__all__ = [
    "AllocationRecord",
    "AllocationResult",
    "AllocationSettings",
    "AllocationTrace",
    "CaptiveGroup",
    "ShareholderShare",
    "TraceEvent",
    "Unit",
    "build_captive_map",
    "calculate_allocations",
    "largest_remainder",
    "run_audits",
]
