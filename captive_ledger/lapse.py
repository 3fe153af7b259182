"""Terminal disposal of production left after every allocation pass."""

from __future__ import annotations

import logging

from captive_ledger.constants import PERIODS
from captive_ledger.records import source_of
from captive_ledger.state import AllocationState
from captive_ledger.trace import AllocationTrace

LOGGER = logging.getLogger(__name__)


def dispose_leftover_production(state: AllocationState, *, trace: AllocationTrace) -> dict[str, float]:
    """Bank or lapse every production unit's leftover and zero it.

    Banking-enabled sites add their leftover to the site's ``BANKING`` record;
    all other sites add it to a ``LAPSE`` record. Returns the totals written
    as ``{"banked": ..., "lapsed": ...}``.
    """

    totals = {"banked": 0.0, "lapsed": 0.0}
    for unit in state.production_units():
        if not unit.has_remaining():
            continue
        if unit.banking_enabled:
            record, bucket = state.book.banking(unit), "banked"
        else:
            record, bucket = state.book.lapse(unit), "lapsed"
        for period in PERIODS:
            left = unit.remaining[period]
            if left > 0:
                record.add(period, left, source=source_of(unit))
                totals[bucket] += left
            unit.remaining[period] = 0.0
        trace.emit("lapse", f"{bucket} leftover production", site=unit.site_id, allocated=dict(record.allocated))

    LOGGER.info(
        "Disposed leftover production for %s: banked=%.2f lapsed=%.2f",
        state.month,
        totals["banked"],
        totals["lapsed"],
    )
    return totals


__all__ = ["dispose_leftover_production"]
