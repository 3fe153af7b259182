from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import pandas as pd

from captive_ledger.constants import ALLOCATION, PERIODS, RECORD_TYPES

__all__ = [
    "AllocationValidationError",
    "PayloadIssue",
    "assert_payloads_valid",
    "validate_allocation_payloads",
]

_REQUIRED_COMMON = ("pk", "sk")


@dataclass(frozen=True)
class PayloadIssue:
    index: int
    pk: str
    message: str


class AllocationValidationError(ValueError):
    """Raised when bulk-upsert payloads break storage rules."""

    def __init__(self, issues: list[PayloadIssue]):
        self.issues = issues
        summary = "; ".join(f"[{issue.index}] {issue.pk}: {issue.message}" for issue in issues[:10])
        super().__init__(f"{len(issues)} invalid allocation payload(s): {summary}")


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_allocation_payloads(payloads: Iterable[Mapping[str, Any]]) -> list[PayloadIssue]:
    """Check payloads before they are handed to the bulk-upsert endpoint.

    Period amounts must be numeric and non-negative. ``charge`` is read as 0
    or 1; a charged allocation needs units and each month may carry only one
    charged ``pk``.
    """

    issues: list[PayloadIssue] = []
    charged_by_month: dict[str, str] = {}

    for index, payload in enumerate(payloads):
        pk = str(payload.get("pk") or "")
        record_type = str(payload.get("type") or ALLOCATION).upper()
        if record_type not in RECORD_TYPES:
            issues.append(PayloadIssue(index, pk, f"unknown record type {record_type!r}"))

        required = list(_REQUIRED_COMMON)
        if record_type == ALLOCATION:
            required.append("consumptionSiteId")
        missing = [name for name in required if _missing(payload.get(name))]
        if missing:
            issues.append(PayloadIssue(index, pk, "missing required fields: " + ", ".join(missing)))

        amounts = pd.to_numeric(pd.Series([payload.get(period) for period in PERIODS], index=list(PERIODS)), errors="coerce")
        for period, amount in amounts.items():
            if pd.isna(amount):
                issues.append(PayloadIssue(index, pk, f"{period} must be numeric"))
            elif amount < 0:
                issues.append(PayloadIssue(index, pk, f"{period} cannot be negative"))

        charge = payload.get("charge")
        charged = charge is True or charge == 1
        if charged:
            if float(amounts.fillna(0.0).sum()) == 0.0:
                issues.append(PayloadIssue(index, pk, "cannot set charge=1 for an allocation with zero units"))
            month = str(payload.get("sk") or "")
            holder = charged_by_month.setdefault(month, pk)
            if holder != pk:
                issues.append(PayloadIssue(index, pk, f"month {month} already has an allocation with charge=1"))

    return issues


def assert_payloads_valid(payloads: Iterable[Mapping[str, Any]]) -> None:
    """Raise :class:`AllocationValidationError` if any payload is invalid."""

    issues = validate_allocation_payloads(list(payloads))
    if issues:
        raise AllocationValidationError(issues)
