"""Bounded, date-ordered, deduplicated window of metric snapshots.

The window is an immutable value: `merge` and `reset` return new windows, so
the transition rules can be exercised without any scheduler or HTTP client.

Rules:
    - points are strictly increasing by calculation_date
    - at most `capacity` points; the oldest dates fall off first
    - a date already held is never replaced (first seen wins)
    - an empty response changes nothing
"""

from datetime import date
from typing import Iterable, List, Set

from pydantic import BaseModel, ConfigDict, Field

from .models import MetricSnapshot

WINDOW_CAPACITY = 10


def _sorted_unique(snapshots: Iterable[MetricSnapshot]) -> List[MetricSnapshot]:
    # sorted() is stable, so the earliest occurrence of a date is the one kept
    seen: Set[date] = set()
    out: List[MetricSnapshot] = []
    for snap in sorted(snapshots, key=lambda s: s.calculation_date):
        if snap.calculation_date in seen:
            continue
        seen.add(snap.calculation_date)
        out.append(snap)
    return out


class MetricsWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    points: tuple[MetricSnapshot, ...] = ()
    initialized: bool = False
    capacity: int = Field(default=WINDOW_CAPACITY, gt=0)

    @classmethod
    def empty(cls, capacity: int = WINDOW_CAPACITY) -> "MetricsWindow":
        return cls(capacity=capacity)

    @property
    def dates(self) -> List[date]:
        return [p.calculation_date for p in self.points]

    def reset(self) -> "MetricsWindow":
        return MetricsWindow.empty(self.capacity)

    def merge(self, snapshots: Iterable[MetricSnapshot]) -> "MetricsWindow":
        incoming = list(snapshots)
        if not incoming:
            return self

        if not self.initialized:
            seeded = _sorted_unique(incoming)
            return self.model_copy(
                update={
                    "points": tuple(seeded[-self.capacity :]),
                    "initialized": True,
                }
            )

        held = set(self.dates)
        fresh = [s for s in incoming if s.calculation_date not in held]
        if not fresh:
            return self
        merged = _sorted_unique([*self.points, *fresh])
        return self.model_copy(update={"points": tuple(merged[-self.capacity :])})
