"""Working state owned by a single allocation call."""

from __future__ import annotations

from dataclasses import dataclass, field

from captive_ledger.records import RecordBook
from captive_ledger.units import Unit


def index_units(units: list[Unit]) -> dict[str, Unit]:
    """Return units keyed by site id, folding duplicates into the first seen."""

    arena: dict[str, Unit] = {}
    for unit in units:
        existing = arena.get(unit.site_id)
        if existing is None:
            arena[unit.site_id] = unit
        else:
            existing.absorb(unit)
    return arena


@dataclass
class AllocationState:
    """Arena of units and records for one month.

    ``producer_groups`` and ``consumers`` hold the same unit objects as the
    id-keyed arenas, in service order.
    """

    month: str
    book: RecordBook
    producers: dict[str, Unit] = field(default_factory=dict)
    consumers: dict[str, Unit] = field(default_factory=dict)
    banked: dict[str, Unit] = field(default_factory=dict)
    producer_groups: dict[str, list[Unit]] = field(default_factory=dict)
    consumer_order: list[Unit] = field(default_factory=list)

    def production_units(self) -> list[Unit]:
        return [unit for group in self.producer_groups.values() for unit in group]

    def remaining_production(self) -> list[Unit]:
        return [unit for unit in self.production_units() if unit.has_remaining()]

    def remaining_consumption(self) -> list[Unit]:
        return [unit for unit in self.consumer_order if unit.has_remaining()]

    def remaining_production_total(self) -> float:
        return sum(unit.total_remaining() for unit in self.production_units())


__all__ = ["AllocationState", "index_units"]
