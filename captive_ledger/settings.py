"""Per-call engine configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable

from captive_ledger import constants


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AllocationSettings:
    """Named policy values the allocation engine would otherwise hard-code.

    Parameters
    ----------
    default_generator_company_id:
        Generator company assigned to production units that carry no company
        id, neither on the unit nor on the matching production site.
    percentage_tolerance:
        Captive groups whose raw total deviates from 100 by more than this are
        rescaled to 100.
    clock:
        Zero-argument callable returning the timestamp stamped on every record
        of a call and used to default a missing month.
    trace_enabled:
        Whether a trace created by the engine keeps events.
    """

    default_generator_company_id: str = constants.DEFAULT_GENERATOR_COMPANY_ID
    percentage_tolerance: float = constants.PERCENTAGE_TOL
    clock: Callable[[], datetime] = field(default=_utc_now, compare=False)
    trace_enabled: bool = constants.TRACE_ENABLED

    def with_overrides(self, **changes: Any) -> "AllocationSettings":
        return replace(self, **changes)

    def current_month(self) -> str:
        """Return the clock's month as ``MMYYYY``."""

        now = self.clock()
        return f"{now.month:02d}{now.year:04d}"


def default_settings() -> AllocationSettings:
    """Return settings built from the currently loaded constants."""

    return AllocationSettings(
        default_generator_company_id=constants.DEFAULT_GENERATOR_COMPANY_ID,
        percentage_tolerance=constants.PERCENTAGE_TOL,
        trace_enabled=constants.TRACE_ENABLED,
    )


__all__ = ["AllocationSettings", "default_settings"]
