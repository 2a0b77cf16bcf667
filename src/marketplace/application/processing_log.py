"""Bounded, thread-safe log of orchestration steps keyed by correlation id.

Old traces are dropped by age (retention) and by count (max entries), so
a long-running worker never grows this without limit.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from marketplace.application.dto import StepRecord
from marketplace.domain.service.inventory_reservation_service import utcnow


@dataclass
class _Trace:
    started_at: datetime
    steps: list[StepRecord] = field(default_factory=list)
    outcome: str | None = None


class ProcessingLog:

    def __init__(
        self,
        max_entries: int = 1000,
        retention: timedelta = timedelta(minutes=60),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._retention = retention
        self._clock = clock
        self._traces: OrderedDict[str, _Trace] = OrderedDict()
        self._lock = threading.Lock()

    def start(self, correlation_id: str) -> None:
        now = self._clock()
        with self._lock:
            self._purge_locked(now)
            self._traces[correlation_id] = _Trace(started_at=now)
            self._traces.move_to_end(correlation_id)
            while len(self._traces) > self._max_entries:
                self._traces.popitem(last=False)

    def record(
        self, correlation_id: str, step: str, status: str = "ok", detail: str | None = None
    ) -> StepRecord:
        record = StepRecord(step=step, status=status, at=self._clock(), detail=detail)
        with self._lock:
            trace = self._traces.get(correlation_id)
            if trace is None:
                # Evicted mid-flight; keep recording under a fresh trace.
                trace = self._traces[correlation_id] = _Trace(started_at=record.at)
            trace.steps.append(record)
        return record

    def finish(self, correlation_id: str, outcome: str) -> None:
        with self._lock:
            trace = self._traces.get(correlation_id)
            if trace is not None:
                trace.outcome = outcome

    def get(self, correlation_id: str) -> list[StepRecord]:
        with self._lock:
            trace = self._traces.get(correlation_id)
            return list(trace.steps) if trace else []

    def outcome(self, correlation_id: str) -> str | None:
        with self._lock:
            trace = self._traces.get(correlation_id)
            return trace.outcome if trace else None

    def purge(self, now: datetime | None = None) -> int:
        """Drop traces older than the retention window. Returns how many were dropped."""
        with self._lock:
            return self._purge_locked(now or self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._traces)

    def _purge_locked(self, now: datetime) -> int:
        cutoff = now - self._retention
        stale = [cid for cid, trace in self._traces.items() if trace.started_at < cutoff]
        for cid in stale:
            del self._traces[cid]
        return len(stale)
