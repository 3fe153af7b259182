"""Allocation, banking and lapse records and the book that upserts them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from captive_ledger.constants import (
    ALLOCATION,
    BANKING,
    BANKING_SITE_ID,
    BANKING_SITE_NAME,
    LAPSE,
    LAPSE_SITE_ID,
    LAPSE_SITE_NAME,
    PERIODS,
)
from captive_ledger.units import BANKED, PRODUCTION, Unit

RecordKey = tuple[str, ...]

MIXED = "mixed"


def source_of(unit: Unit) -> str:
    return BANKED if unit.kind == BANKED else PRODUCTION


@dataclass
class AllocationRecord:
    """Cumulative units moved out of one production site for one month.

    ``allocated`` only ever grows; :meth:`add` rejects negative amounts.
    ``by_source`` splits it between current production and banked units of
    the same site id. A record fed by both is tagged ``source="mixed"``, and
    each subtotal stays within its own unit's original capacity.
    """

    record_type: str
    production_site_id: str
    consumption_site_id: str
    month: str
    generator_company_id: str = ""
    shareholder_company_id: str = ""
    production_site_name: str = ""
    consumption_site_name: str = ""
    site_type: str = ""
    allocation_percentage: float | None = None
    banking_enabled: bool = False
    source: str = PRODUCTION
    ir_type: str = ""
    injection: dict[str, float] = field(default_factory=dict)
    reduction: dict[str, float] = field(default_factory=dict)
    allocated: dict[str, float] = field(default_factory=lambda: dict.fromkeys(PERIODS, 0.0))
    by_source: dict[str, dict[str, float]] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> RecordKey:
        if self.record_type == ALLOCATION:
            return (self.production_site_id, self.consumption_site_id, self.month)
        return (self.production_site_id, self.month)

    @property
    def total(self) -> float:
        return sum(self.allocated.values())

    def add(self, period: str, amount: float, *, source: str | None = None) -> None:
        if period not in self.allocated:
            raise ValueError(f"unknown period {period!r}")
        if amount < 0:
            raise ValueError(f"allocation amounts only increase; got {amount!r} for {period}")
        self.allocated[period] += amount
        origin = source or self.source
        subtotal = self.by_source.setdefault(origin, dict.fromkeys(PERIODS, 0.0))
        subtotal[period] += amount
        if origin != self.source:
            self.source = MIXED

    def to_dict(self) -> dict[str, Any]:
        """Return the record in the camelCase shape used by the API layer."""

        payload: dict[str, Any] = {
            "type": self.record_type,
            "productionSiteId": self.production_site_id,
            "productionSite": self.production_site_name,
            "siteName": self.production_site_name,
            "siteType": self.site_type,
            "consumptionSiteId": self.consumption_site_id,
            "consumptionSite": self.consumption_site_name,
            "generatorCompanyId": self.generator_company_id,
            "shareholderCompanyId": self.shareholder_company_id,
            "month": self.month,
            "allocationPercentage": self.allocation_percentage,
            "bankingEnabled": self.banking_enabled,
            "source": self.source,
            "allocated": dict(self.allocated),
            "allocatedBySource": {origin: dict(amounts) for origin, amounts in self.by_source.items()},
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if self.ir_type or self.injection or self.reduction:
            payload["irType"] = self.ir_type
            payload["injection"] = dict(self.injection)
            payload["reduction"] = dict(self.reduction)
        return payload


class RecordBook:
    """Upsert store for one month's records; one record per key and type."""

    def __init__(self, month: str, timestamp: datetime):
        self.month = month
        self.timestamp = timestamp
        self._allocations: dict[RecordKey, AllocationRecord] = {}
        self._banking: dict[RecordKey, AllocationRecord] = {}
        self._lapse: dict[RecordKey, AllocationRecord] = {}

    def _stamp(self, record: AllocationRecord) -> AllocationRecord:
        record.created_at = self.timestamp
        record.updated_at = self.timestamp
        return record

    def allocation(
        self,
        producer: Unit,
        consumer: Unit,
        *,
        shareholder_id: str = "",
        percentage: float | None = None,
    ) -> AllocationRecord:
        key = (producer.site_id, consumer.site_id, self.month)
        record = self._allocations.get(key)
        if record is None:
            record = self._stamp(
                AllocationRecord(
                    record_type=ALLOCATION,
                    production_site_id=producer.site_id,
                    consumption_site_id=consumer.site_id,
                    month=self.month,
                    generator_company_id=producer.company_id,
                    shareholder_company_id=shareholder_id or consumer.company_id,
                    production_site_name=producer.site_name,
                    consumption_site_name=consumer.site_name,
                    site_type=producer.site_type,
                    allocation_percentage=percentage,
                    banking_enabled=producer.banking_enabled,
                    source=source_of(producer),
                )
            )
            self._allocations[key] = record
        if consumer.ir_type or consumer.injection or consumer.reduction:
            record.ir_type = consumer.ir_type
            record.injection = dict(consumer.injection)
            record.reduction = dict(consumer.reduction)
        return record

    def _terminal(self, store: dict[RecordKey, AllocationRecord], record_type: str, producer: Unit) -> AllocationRecord:
        key = (producer.site_id, self.month)
        record = store.get(key)
        if record is None:
            banking = record_type == BANKING
            record = self._stamp(
                AllocationRecord(
                    record_type=record_type,
                    production_site_id=producer.site_id,
                    consumption_site_id=BANKING_SITE_ID if banking else LAPSE_SITE_ID,
                    month=self.month,
                    generator_company_id=producer.company_id,
                    production_site_name=producer.site_name,
                    consumption_site_name=BANKING_SITE_NAME if banking else LAPSE_SITE_NAME,
                    site_type=producer.site_type,
                    banking_enabled=banking,
                    source=source_of(producer),
                )
            )
            store[key] = record
        return record

    def banking(self, producer: Unit) -> AllocationRecord:
        return self._terminal(self._banking, BANKING, producer)

    def lapse(self, producer: Unit) -> AllocationRecord:
        return self._terminal(self._lapse, LAPSE, producer)

    @property
    def allocations(self) -> list[AllocationRecord]:
        return list(self._allocations.values())

    @property
    def banking_records(self) -> list[AllocationRecord]:
        return list(self._banking.values())

    @property
    def lapse_records(self) -> list[AllocationRecord]:
        return list(self._lapse.values())

    def all_records(self) -> list[AllocationRecord]:
        return self.allocations + self.banking_records + self.lapse_records


__all__ = ["MIXED", "AllocationRecord", "RecordBook", "RecordKey", "source_of"]
