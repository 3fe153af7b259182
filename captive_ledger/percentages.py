"""Whole-number percentage apportionment (largest-remainder method)."""

from __future__ import annotations

import math
from itertools import cycle, islice
from typing import Hashable, Mapping, TypeVar

from captive_ledger.constants import PERCENT_TOTAL
from captive_ledger.units import coerce_amount

K = TypeVar("K", bound=Hashable)


def largest_remainder(percentages: Mapping[K, float], total: int = PERCENT_TOTAL) -> dict[K, int]:
    """Return whole-number shares of ``percentages`` that sum exactly to ``total``.

    Every key gets the floor of its share; the points still missing go one at
    a time to the keys with the largest fractional remainders. Ties keep the
    input order, so the result is deterministic for a given mapping order.

    Inputs that do not sum to ``total`` are still forced onto it: a shortfall
    larger than the number of keys is handed out round-robin in remainder
    order, and an excess is taken back from the smallest remainders first
    without driving any share below zero. An all-zero input stays all zero.
    """

    values = {key: coerce_amount(value) for key, value in percentages.items()}
    if not values or not any(values.values()):
        return {key: 0 for key in values}

    shares = {key: int(math.floor(value)) for key, value in values.items()}
    remainders = {key: values[key] - shares[key] for key in values}
    by_remainder = sorted(values, key=lambda key: remainders[key], reverse=True)

    shortfall = total - sum(shares.values())
    if shortfall > 0:
        for key in islice(cycle(by_remainder), shortfall):
            shares[key] += 1
    elif shortfall < 0:
        excess = -shortfall
        smallest_first = sorted(values, key=lambda key: remainders[key])
        while excess > 0:
            removed = False
            for key in smallest_first:
                if excess == 0:
                    break
                if shares[key] > 0:
                    shares[key] -= 1
                    excess -= 1
                    removed = True
            if not removed:
                break
    return shares


def rank_by_share(shares: Mapping[K, float]) -> list[tuple[K, float]]:
    """Return ``shares`` ordered highest first, ties in input order."""

    return sorted(shares.items(), key=lambda item: item[1], reverse=True)


__all__ = ["largest_remainder", "rank_by_share"]
