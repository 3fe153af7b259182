"""Normalize raw production, consumption and banking records into units."""

from __future__ import annotations

import math
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import pandas as pd

from captive_ledger.constants import PERIODS

PRODUCTION = "production"
CONSUMPTION = "consumption"
BANKED = "banking"

_TRUE_FLAGS = {"1", "true", "yes", "y"}

_PRODUCTION_ID_FIELDS = ("productionSiteId", "siteId", "id")
_CONSUMPTION_ID_FIELDS = ("consumptionSiteId", "siteId", "id")
_GENERATOR_FIELDS = ("generatorCompanyId", "companyId")
_SHAREHOLDER_FIELDS = ("shareholderCompanyId", "companyId")
_PRODUCTION_NAME_FIELDS = ("siteName", "productionSite", "name")
_CONSUMPTION_NAME_FIELDS = ("siteName", "consumptionSite", "name")


def coerce_amount(value: Any) -> float:
    """Return ``value`` as a finite, non-negative float (``0.0`` otherwise)."""

    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return 0.0
    try:
        numeric = pd.to_numeric(value, errors="coerce")
    except (TypeError, ValueError):
        return 0.0
    if pd.isna(numeric):
        return 0.0
    number = float(numeric)
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        # ids stored as numbers: 1.0 reads as "1"
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in _TRUE_FLAGS


def coerce_timestamp(value: Any) -> pd.Timestamp | None:
    """Return ``value`` as a UTC timestamp, or ``None`` for anything but a single date."""

    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        stamp = pd.to_datetime(value, errors="coerce", utc=True)
    except (TypeError, ValueError):
        return None
    if not isinstance(stamp, pd.Timestamp) or pd.isna(stamp):
        return None
    return stamp


def _first_text(raw: Mapping[str, Any], fields: Iterable[str]) -> str:
    for name in fields:
        text = coerce_text(raw.get(name))
        if text:
            return text
    return ""


def _period_adjustments(raw: Mapping[str, Any], name: str) -> dict[str, float]:
    """Read ``injection``/``reduction`` from a nested mapping or flat fields."""

    nested = raw.get(name)
    adjustments: dict[str, float] = {}
    for period in PERIODS:
        if isinstance(nested, Mapping):
            amount = coerce_amount(nested.get(period))
        else:
            amount = coerce_amount(raw.get(f"{name}_{period}"))
        if amount > 0:
            adjustments[period] = amount
    return adjustments


def _period_amounts(raw: Mapping[str, Any]) -> dict[str, float]:
    return {period: coerce_amount(raw.get(period)) for period in PERIODS}


@dataclass
class Unit:
    """A site's energy position for one month.

    ``remaining`` is mutated in place by the engine; ``original`` keeps the
    amounts as normalized so leftovers can be reconciled afterwards.
    """

    site_id: str
    company_id: str
    kind: str
    site_name: str = ""
    site_type: str = ""
    month: str = ""
    remaining: dict[str, float] = field(default_factory=lambda: dict.fromkeys(PERIODS, 0.0))
    original: dict[str, float] = field(default_factory=dict)
    banking_enabled: bool = False
    commission_date: pd.Timestamp | None = None
    ir_type: str = ""
    injection: dict[str, float] = field(default_factory=dict)
    reduction: dict[str, float] = field(default_factory=dict)
    annual_consumption: float = 0.0

    def __post_init__(self) -> None:
        if not self.original:
            self.original = dict(self.remaining)

    def total_remaining(self) -> float:
        return sum(self.remaining.get(period, 0.0) for period in PERIODS)

    def has_remaining(self) -> bool:
        return any(self.remaining.get(period, 0.0) > 0 for period in PERIODS)

    def take(self, period: str, amount: float) -> None:
        """Decrease ``remaining[period]`` by ``amount``, never below zero."""

        self.remaining[period] = max(self.remaining.get(period, 0.0) - amount, 0.0)

    def absorb(self, other: "Unit") -> None:
        """Fold a duplicate record for the same site into this unit."""

        for period in PERIODS:
            self.remaining[period] = self.remaining.get(period, 0.0) + other.remaining.get(period, 0.0)
            self.original[period] = self.original.get(period, 0.0) + other.original.get(period, 0.0)
        self.banking_enabled = self.banking_enabled or other.banking_enabled

    def snapshot(self) -> "Unit":
        return deepcopy(self)


def normalize_production_unit(raw: Any) -> Unit | None:
    """Return a production :class:`Unit` or ``None`` when ``raw`` has no site id."""

    if not isinstance(raw, Mapping):
        return None
    site_id = _first_text(raw, _PRODUCTION_ID_FIELDS)
    if not site_id:
        return None
    banking = any(
        coerce_flag(raw.get(name)) for name in ("bankingEnabled", "unitBankingEnabled", "banking")
    )
    return Unit(
        site_id=site_id,
        company_id=_first_text(raw, _GENERATOR_FIELDS),
        kind=PRODUCTION,
        site_name=_first_text(raw, _PRODUCTION_NAME_FIELDS),
        site_type=coerce_text(raw.get("type")).upper(),
        month=coerce_text(raw.get("month") or raw.get("sk")),
        remaining=_period_amounts(raw),
        banking_enabled=banking,
        commission_date=coerce_timestamp(raw.get("commissionDate")),
    )


def normalize_consumption_unit(raw: Any) -> Unit | None:
    """Return a consumption :class:`Unit` or ``None`` when ``raw`` has no site id."""

    if not isinstance(raw, Mapping):
        return None
    site_id = _first_text(raw, _CONSUMPTION_ID_FIELDS)
    if not site_id:
        return None
    annual = raw.get("annualConsumption")
    if annual is None:
        annual = raw.get("annualConsumption_L")
    return Unit(
        site_id=site_id,
        company_id=_first_text(raw, _SHAREHOLDER_FIELDS),
        kind=CONSUMPTION,
        site_name=_first_text(raw, _CONSUMPTION_NAME_FIELDS),
        site_type=coerce_text(raw.get("type")).upper(),
        month=coerce_text(raw.get("month") or raw.get("sk")),
        remaining=_period_amounts(raw),
        ir_type=coerce_text(raw.get("irType")),
        injection=_period_adjustments(raw, "injection"),
        reduction=_period_adjustments(raw, "reduction"),
        annual_consumption=coerce_amount(annual),
    )


def normalize_banking_unit(raw: Any) -> Unit | None:
    """Return a banked production :class:`Unit`; banked units always bank."""

    unit = normalize_production_unit(raw)
    if unit is None:
        return None
    unit.kind = BANKED
    unit.banking_enabled = True
    return unit


__all__ = [
    "BANKED",
    "CONSUMPTION",
    "PRODUCTION",
    "Unit",
    "coerce_amount",
    "coerce_flag",
    "coerce_text",
    "coerce_timestamp",
    "normalize_banking_unit",
    "normalize_consumption_unit",
    "normalize_production_unit",
]
