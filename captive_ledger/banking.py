"""Apply banked production to unmet demand and carry the rest forward."""

from __future__ import annotations

import logging
import math

from captive_ledger.constants import PERCENT_TOTAL, PERIODS
from captive_ledger.records import source_of
from captive_ledger.state import AllocationState
from captive_ledger.trace import AllocationTrace
from captive_ledger.units import Unit

LOGGER = logging.getLogger(__name__)


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def banked_groups(units: list[Unit]) -> dict[str, list[Unit]]:
    groups: dict[str, list[Unit]] = {}
    for unit in units:
        groups.setdefault(unit.company_id, []).append(unit)
    return groups


def run_banking_pass(state: AllocationState, *, trace: AllocationTrace) -> float:
    """Serve remaining demand from banked units of the target month.

    Banking is not captive-restricted: every consumer is visited in service
    order. Each banked unit draws an equal share (``100 / group size``) of a
    consumer's outstanding need, rounded half up and capped at what is banked.
    """

    moved_total = 0.0
    for generator_id, group in banked_groups(list(state.banked.values())).items():
        percentage = PERCENT_TOTAL / len(group)
        for banked in group:
            for consumer in state.consumer_order:
                for period in PERIODS:
                    need = consumer.remaining[period]
                    available = banked.remaining[period]
                    if need <= 0 or available <= 0:
                        continue
                    take = min(round_half_up(need * percentage / PERCENT_TOTAL), available)
                    if take <= 0:
                        continue
                    banked.take(period, take)
                    consumer.take(period, take)
                    record = state.book.allocation(banked, consumer, percentage=percentage)
                    record.add(period, take, source=source_of(banked))
                    moved_total += take
                    trace.emit(
                        "banking",
                        "allocated banked units",
                        generator=generator_id,
                        banked_site=banked.site_id,
                        consumer=consumer.site_id,
                        period=period,
                        amount=take,
                    )

    if state.banked:
        LOGGER.info("Banking pass for %s moved %.2f units", state.month, moved_total)
    return moved_total


def carry_forward_banked(state: AllocationState, *, trace: AllocationTrace) -> float:
    """Fold unused banked units into their site's ``BANKING`` record."""

    carried = 0.0
    for banked in state.banked.values():
        if not banked.has_remaining():
            continue
        record = state.book.banking(banked)
        for period in PERIODS:
            left = banked.remaining[period]
            if left > 0:
                record.add(period, left, source=source_of(banked))
                carried += left
            banked.remaining[period] = 0.0
        trace.emit("banking", "carried banked units forward", site=banked.site_id, allocated=dict(record.allocated))
    return carried


__all__ = ["banked_groups", "carry_forward_banked", "round_half_up", "run_banking_pass"]
