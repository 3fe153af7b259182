"""Group producers by generator company and order consumers for service."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from captive_ledger.units import Unit, coerce_text


def order_by_commission_date(units: Sequence[Unit]) -> list[Unit]:
    """Return ``units`` oldest commission date first; undated units last."""

    def _key(unit: Unit) -> tuple[bool, int]:
        stamp = unit.commission_date
        if stamp is None:
            return (True, 0)
        return (False, int(stamp.value))

    return sorted(units, key=_key)


def group_producers(units: Iterable[Unit], *, default_generator_id: str) -> dict[str, list[Unit]]:
    """Partition production units by generator company.

    Units without a company id are assigned ``default_generator_id`` (and keep
    it, so downstream records carry the id they were grouped under).
    """

    groups: dict[str, list[Unit]] = {}
    for unit in units:
        if not unit.company_id:
            unit.company_id = default_generator_id
        groups.setdefault(unit.company_id, []).append(unit)
    return groups


def _priority(value: Any) -> int | None:
    if value is None or isinstance(value, (bool, Mapping, list, tuple, set)):
        return None
    try:
        numeric = pd.to_numeric(value, errors="coerce")
    except (TypeError, ValueError):
        return None
    if not pd.api.types.is_scalar(numeric) or pd.isna(numeric) or not math.isfinite(float(numeric)):
        return None
    return int(numeric)


def order_consumers(units: Sequence[Unit], priority_map: Mapping[str, Any] | None = None) -> list[Unit]:
    """Return consumers in service order.

    Consumers with an explicit priority come first, lowest number first.
    The rest follow, largest total remaining demand first. Both sorts are
    stable, so equal keys keep their input order.
    """

    priorities = {coerce_text(key): _priority(value) for key, value in (priority_map or {}).items()}
    ranked: list[tuple[int, Unit]] = []
    unranked: list[Unit] = []
    for unit in units:
        rank = priorities.get(unit.site_id)
        if rank is None:
            unranked.append(unit)
        else:
            ranked.append((rank, unit))

    ranked.sort(key=lambda item: item[0])
    unranked.sort(key=lambda unit: unit.total_remaining(), reverse=True)
    return [unit for _, unit in ranked] + unranked


def group_consumers_by_shareholder(units: Iterable[Unit]) -> dict[str, list[Unit]]:
    """Partition ordered consumers by shareholder company, keeping order."""

    groups: dict[str, list[Unit]] = {}
    for unit in units:
        groups.setdefault(unit.company_id, []).append(unit)
    return groups


__all__ = [
    "group_consumers_by_shareholder",
    "group_producers",
    "order_by_commission_date",
    "order_consumers",
]
