"""Captive allocation pass: share each generator's output among its shareholders."""

from __future__ import annotations

import logging
import math
from typing import Mapping, Sequence

from captive_ledger.captive import CaptiveGroup
from captive_ledger.constants import PERCENT_TOTAL, PERIODS
from captive_ledger.grouping import group_consumers_by_shareholder
from captive_ledger.records import RecordBook, source_of
from captive_ledger.state import AllocationState
from captive_ledger.trace import AllocationTrace
from captive_ledger.units import Unit

LOGGER = logging.getLogger(__name__)


def period_totals(units: Sequence[Unit]) -> dict[str, float]:
    return {period: sum(unit.remaining[period] for unit in units) for period in PERIODS}


def shareholder_ceilings(totals: Mapping[str, float], percentage: float) -> dict[str, float]:
    """Return the per-period cap a shareholder may draw from a generator group."""

    return {
        period: float(math.floor(totals[period] * percentage / PERCENT_TOTAL))
        for period in PERIODS
    }


def adjusted_take(consumer: Unit, period: str, ceiling: float) -> float:
    """Return what ``consumer`` should draw in ``period`` under ``ceiling``.

    The base draw is the smaller of demand and ceiling. An injection adds to
    it, otherwise a reduction subtracts from it; the result stays within
    ``[0, ceiling]``.
    """

    take = min(consumer.remaining[period], ceiling)
    injection = consumer.injection.get(period, 0.0)
    reduction = consumer.reduction.get(period, 0.0)
    if injection > 0:
        take = min(take + injection, ceiling)
    elif reduction > 0:
        take = max(take - reduction, 0.0)
    return max(min(take, ceiling), 0.0)


def distribute(
    book: RecordBook,
    producers: Sequence[Unit],
    consumer: Unit,
    period: str,
    amount: float,
    *,
    shareholder_id: str = "",
    percentage: float | None = None,
) -> float:
    """Draw ``amount`` for ``consumer`` from ``producers`` in order.

    Returns the amount actually moved, which falls short of ``amount`` only
    when the producers run out.
    """

    outstanding = amount
    moved = 0.0
    for producer in producers:
        if outstanding <= 0:
            break
        available = producer.remaining[period]
        if available <= 0:
            continue
        portion = min(outstanding, available)
        producer.take(period, portion)
        consumer.take(period, portion)
        record = book.allocation(producer, consumer, shareholder_id=shareholder_id, percentage=percentage)
        record.add(period, portion, source=source_of(producer))
        outstanding -= portion
        moved += portion
    return moved


def _allocate_shareholder(
    state: AllocationState,
    producers: Sequence[Unit],
    consumers: Sequence[Unit],
    shareholder_id: str,
    percentage: int,
    totals: Mapping[str, float],
    trace: AllocationTrace,
) -> float:
    ceilings = shareholder_ceilings(totals, percentage)
    trace.emit(
        "captive",
        "shareholder ceilings",
        shareholder=shareholder_id,
        percentage=percentage,
        ceilings=dict(ceilings),
    )
    moved_total = 0.0

    for consumer in consumers:
        for period in PERIODS:
            if consumer.remaining[period] <= 0 or ceilings[period] <= 0:
                continue
            take = adjusted_take(consumer, period, ceilings[period])
            if take <= 0:
                continue
            moved = distribute(
                state.book,
                producers,
                consumer,
                period,
                take,
                shareholder_id=shareholder_id,
                percentage=float(percentage),
            )
            ceilings[period] -= moved
            moved_total += moved
            if moved:
                trace.emit(
                    "captive",
                    "allocated",
                    shareholder=shareholder_id,
                    consumer=consumer.site_id,
                    period=period,
                    amount=moved,
                )
    return moved_total


def run_captive_pass(
    state: AllocationState,
    captive_map: Mapping[str, CaptiveGroup],
    *,
    trace: AllocationTrace,
) -> float:
    """Allocate every generator group to its captive shareholders.

    Shareholders are served highest percentage first. Each one's ceiling for
    a period is its whole-number share of the group's production as it stood
    before any shareholder of the group drew from it. Returns the total moved.
    """

    consumers_by_shareholder = group_consumers_by_shareholder(state.consumer_order)
    moved_total = 0.0

    for generator_id, producers in state.producer_groups.items():
        if not producers:
            continue
        group = captive_map.get(generator_id)
        ranked = group.ranked_shareholders() if group is not None else []
        if not ranked:
            trace.emit("captive", "no active shareholders", generator=generator_id)
            continue

        totals = period_totals(producers)
        for shareholder_id, percentage in ranked:
            consumers = [
                unit for unit in consumers_by_shareholder.get(shareholder_id, []) if unit.has_remaining()
            ]
            if not consumers:
                trace.emit("captive", "no consumers with demand", generator=generator_id, shareholder=shareholder_id)
                continue
            moved_total += _allocate_shareholder(
                state, producers, consumers, shareholder_id, percentage, totals, trace
            )

    LOGGER.info("Captive pass for %s moved %.2f units", state.month, moved_total)
    return moved_total


__all__ = [
    "adjusted_take",
    "distribute",
    "period_totals",
    "run_captive_pass",
    "shareholder_ceilings",
]
