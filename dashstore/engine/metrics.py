"""
dashstore Metrics — In-process labelled counters.

The store never registers counters globally; a MetricsRegistry is created
by the caller and injected into DashboardStore.

    registry = MetricsRegistry()
    shadow = registry.counter("search_shadow", subsystem="db_dashboard",
                              label_names=("equal", "error"))
    shadow.inc(equal="true", error="false")
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger("dashstore.engine.metrics")


class CounterVec:
    """Monotonic counter partitioned by a fixed tuple of label names."""

    def __init__(self, name: str, label_names: Iterable[str], subsystem: str = ""):
        self.name = name
        self.subsystem = subsystem
        self.label_names: Tuple[str, ...] = tuple(label_names)
        self._values: Dict[Tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    @property
    def full_name(self) -> str:
        return f"{self.subsystem}_{self.name}" if self.subsystem else self.name

    def _key(self, labels: Dict[str, str]) -> Tuple[str, ...]:
        if set(labels) != set(self.label_names):
            raise ValueError(
                f"Counter '{self.full_name}' expects labels {self.label_names}, "
                f"got {tuple(sorted(labels))}"
            )
        return tuple(str(labels[n]) for n in self.label_names)

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def value(self, **labels: str) -> float:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def samples(self) -> Dict[Tuple[str, ...], float]:
        with self._lock:
            return dict(self._values)


class MetricsRegistry:
    """Holds the counters of one store instance."""

    def __init__(self):
        self._counters: Dict[str, CounterVec] = {}
        self._lock = threading.Lock()

    def counter(
        self,
        name: str,
        label_names: Iterable[str] = (),
        subsystem: str = "",
    ) -> CounterVec:
        """Return the counter with this name, creating it on first use."""
        with self._lock:
            counter = self._counters.get(name)
            if counter is None:
                counter = CounterVec(name, label_names, subsystem=subsystem)
                self._counters[name] = counter
                logger.debug(f"Registered counter {counter.full_name}")
            return counter

    def get(self, name: str) -> Optional[CounterVec]:
        return self._counters.get(name)

    def snapshot(self) -> Dict[str, Dict[Tuple[str, ...], float]]:
        return {c.full_name: c.samples() for c in self._counters.values()}
