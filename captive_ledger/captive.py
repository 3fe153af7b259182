"""Aggregate raw captive agreements into per-generator shareholder groups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from captive_ledger.constants import ACTIVE_STATUS, PERCENT_TOTAL, PERCENTAGE_TOL
from captive_ledger.percentages import largest_remainder, rank_by_share
from captive_ledger.trace import AllocationTrace
from captive_ledger.units import coerce_amount, coerce_text

LOGGER = logging.getLogger(__name__)

_PERCENTAGE_FIELDS = ("allocationPercentage", "percentage", "shareholdingPercentage")
_STATUS_FIELDS = ("allocationStatus", "status")
_NAME_FIELDS = ("shareholderCompanyName", "shareholderName", "name")


@dataclass
class ShareholderShare:
    shareholder_id: str
    percentage: float
    status: str = ACTIVE_STATUS
    name: str = ""


@dataclass
class CaptiveGroup:
    """Active shareholders of one generator company."""

    generator_id: str
    shareholders: dict[str, ShareholderShare] = field(default_factory=dict)
    total_percentage: float = 0.0

    def whole_percentages(self) -> dict[str, int]:
        """Return shareholder shares as whole numbers summing to 100."""

        return largest_remainder(
            {sid: share.percentage for sid, share in self.shareholders.items()}
        )

    def ranked_shareholders(self) -> list[tuple[str, int]]:
        """Return ``(shareholder_id, whole_percentage)`` highest share first."""

        return [
            (sid, int(pct))
            for sid, pct in rank_by_share(self.whole_percentages())
            if pct > 0
        ]


def _first_present(entry: Mapping[str, Any], fields: Iterable[str]) -> Any:
    for name in fields:
        value = entry.get(name)
        if value is not None and value != "":
            return value
    return None


def _skip(trace: AllocationTrace | None, index: int, reason: str, **data: Any) -> None:
    if trace is not None:
        trace.warn("captive", f"skipped captive entry {index}: {reason}", **data)
    else:
        LOGGER.warning("Skipped captive entry %d: %s %s", index, reason, data)


def build_captive_map(
    records: Iterable[Any],
    *,
    tolerance: float = PERCENTAGE_TOL,
    trace: AllocationTrace | None = None,
) -> dict[str, CaptiveGroup]:
    """Return ``generator_id -> CaptiveGroup`` built from raw agreements.

    Malformed entries are dropped with a warning; inactive or zero-percentage
    agreements are ignored. Repeated agreements for the same pair add up, and
    groups whose total strays from 100 by more than ``tolerance`` are rescaled
    so their shares sum to 100.
    """

    groups: dict[str, CaptiveGroup] = {}

    for index, entry in enumerate(records):
        if not isinstance(entry, Mapping):
            _skip(trace, index, "not a record", value=repr(entry))
            continue

        generator_id = coerce_text(entry.get("generatorCompanyId"))
        shareholder_id = coerce_text(entry.get("shareholderCompanyId"))
        if not generator_id or not shareholder_id:
            _skip(
                trace,
                index,
                "missing company id",
                generatorCompanyId=generator_id,
                shareholderCompanyId=shareholder_id,
            )
            continue

        percentage = min(max(coerce_amount(_first_present(entry, _PERCENTAGE_FIELDS)), 0.0), 100.0)
        status = coerce_text(_first_present(entry, _STATUS_FIELDS) or ACTIVE_STATUS).lower()
        if status != ACTIVE_STATUS or percentage <= 0:
            if trace is not None:
                trace.emit(
                    "captive",
                    "ignored agreement",
                    generator=generator_id,
                    shareholder=shareholder_id,
                    status=status,
                    percentage=percentage,
                )
            continue

        group = groups.setdefault(generator_id, CaptiveGroup(generator_id))
        share = group.shareholders.get(shareholder_id)
        if share is None:
            group.shareholders[shareholder_id] = ShareholderShare(
                shareholder_id=shareholder_id,
                percentage=percentage,
                status=status,
                name=coerce_text(_first_present(entry, _NAME_FIELDS)),
            )
        else:
            share.percentage += percentage
        group.total_percentage += percentage

    for group in groups.values():
        total = group.total_percentage
        if total > 0 and abs(total - PERCENT_TOTAL) > tolerance:
            factor = PERCENT_TOTAL / total
            for share in group.shareholders.values():
                share.percentage *= factor
            LOGGER.info(
                "Rescaled captive shares for generator %s from %.4f%% to %d%%",
                group.generator_id,
                total,
                PERCENT_TOTAL,
            )
            group.total_percentage = float(PERCENT_TOTAL)

    return groups


__all__ = ["CaptiveGroup", "ShareholderShare", "build_captive_map"]
