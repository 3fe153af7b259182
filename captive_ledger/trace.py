"""Structured trace events emitted while an allocation runs."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceEvent:
    """One step reported by the engine."""

    stage: str
    message: str
    level: int = logging.DEBUG
    data: Mapping[str, Any] = field(default_factory=dict)


class AllocationTrace:
    """Collect trace events and mirror them to a logger.

    Disabling the trace stops events from being kept; warnings still reach the
    logger so skipped input is never silent.
    """

    def __init__(self, *, enabled: bool = True, logger: logging.Logger | None = None):
        self.enabled = enabled
        self._logger = logger or LOGGER
        self._events: list[TraceEvent] = []
        self._warning_counts: Counter[str] = Counter()

    def emit(self, stage: str, message: str, **data: Any) -> None:
        self._record(TraceEvent(stage, message, logging.DEBUG, data))

    def warn(self, stage: str, message: str, **data: Any) -> None:
        self._warning_counts[stage] += 1
        self._record(TraceEvent(stage, message, logging.WARNING, data))

    def warning_count(self, stage: str) -> int:
        """Warnings raised for ``stage``, counted even when the trace is disabled."""

        return self._warning_counts[stage]

    def _record(self, event: TraceEvent) -> None:
        if self._logger.isEnabledFor(event.level):
            self._logger.log(event.level, "[%s] %s %s", event.stage, event.message, dict(event.data))
        if self.enabled:
            self._events.append(event)

    @property
    def events(self) -> tuple[TraceEvent, ...]:
        return tuple(self._events)

    def warnings(self) -> tuple[TraceEvent, ...]:
        return tuple(event for event in self._events if event.level >= logging.WARNING)

    def count(self, stage: str) -> int:
        return sum(1 for event in self._events if event.stage == stage)

    def stage_counts(self) -> Counter[str]:
        return Counter(event.stage for event in self._events)

    def __iter__(self) -> Iterator[TraceEvent]:  # pragma: no cover - trivial helper
        return iter(self._events)

    def __len__(self) -> int:  # pragma: no cover - trivial helper
        return len(self._events)


__all__ = ["AllocationTrace", "TraceEvent"]
