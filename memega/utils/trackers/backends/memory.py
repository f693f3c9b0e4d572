from __future__ import annotations

from collections import defaultdict
import threading
from typing import Any

from memega.utils.trackers.core import MetricBackend


class InMemoryBackend(MetricBackend):
    """Keeps every written point; useful in notebooks and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.scalars: dict[str, list[tuple[int, float]]] = defaultdict(list)
        self.hists: dict[str, list[tuple[int, Any]]] = defaultdict(list)
        self.texts: dict[str, list[tuple[int, str]]] = defaultdict(list)
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def write_scalar(self, tag: str, value: float, step: int, wall_time: float) -> None:
        with self._lock:
            self.scalars[tag].append((step, value))

    def write_hist(self, tag: str, values: Any, step: int, wall_time: float) -> None:
        with self._lock:
            self.hists[tag].append((step, values))

    def write_text(self, tag: str, text: str, step: int, wall_time: float) -> None:
        with self._lock:
            self.texts[tag].append((step, text))
