from __future__ import annotations

from queue import Empty, Full, Queue
import threading
import time
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from memega.utils.trackers.base import MetricWriter

EventKind = Literal["scalar", "hist", "text"]


def _sanitize(tag: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_./=," else "_" for ch in str(tag))


class _Event(BaseModel):
    kind: EventKind
    tag: str
    payload: Any
    step: int | None = None
    wall_time: float = Field(default_factory=time.time)


class MetricBackend:
    """Adapter every backend implements; called from the writer thread only."""

    def open(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def write_scalar(self, tag: str, value: float, step: int, wall_time: float) -> None:
        raise NotImplementedError

    def write_hist(self, tag: str, values: Any, step: int, wall_time: float) -> None:
        raise NotImplementedError

    def write_text(self, tag: str, text: str, step: int, wall_time: float) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        pass


class QueuedWriter(MetricWriter):
    """Non-blocking writer: events go through a bounded queue to a backend thread.

    Producers never wait on the backend. When the queue is full the event is
    dropped and counted. Tags without an explicit step get an auto-incremented
    step per tag.
    """

    def __init__(self, backend: MetricBackend, *, queue_size: int = 8192, flush_secs: float = 3.0):
        self.backend = backend
        self.dropped = 0
        self._steps: dict[str, int] = {}
        self._q: Queue[_Event] = Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._closed = False
        self._flush_secs = float(flush_secs)
        self._last_flush = time.time()

        self.backend.open()
        self._t = threading.Thread(target=self._loop, name="memega-metrics", daemon=True)
        self._t.start()

    def scalar(self, tag: str, value: float, step: int | None = None) -> None:
        self._offer(_Event(kind="scalar", tag=tag, payload=float(value), step=step))

    def hist(self, tag: str, values: Any, step: int | None = None) -> None:
        self._offer(_Event(kind="hist", tag=tag, payload=values, step=step))

    def text(self, tag: str, text: str, step: int | None = None) -> None:
        self._offer(_Event(kind="text", tag=tag, payload=text, step=step))

    def close(self, drain_timeout_s: float = 1.5) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._t.is_alive():
            self._t.join(timeout=2.0)

        deadline = time.time() + max(0.0, drain_timeout_s)
        while time.time() < deadline:
            try:
                event = self._q.get_nowait()
            except Empty:
                break
            self._handle(event)

        try:
            self.backend.flush()
        finally:
            self.backend.close()
        if self.dropped:
            logger.warning("[QueuedWriter] Dropped {} events on a full queue", self.dropped)

    def _offer(self, event: _Event) -> None:
        if self._closed:
            return
        try:
            self._q.put_nowait(event)
        except Full:
            self.dropped += 1

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._q.get(timeout=0.1)
            except Empty:
                event = None
            if event is not None:
                self._handle(event)
            now = time.time()
            if now - self._last_flush >= self._flush_secs:
                self._safe(self.backend.flush)
                self._last_flush = now

    def _handle(self, e: _Event) -> None:
        tag = _sanitize(e.tag)
        step = self._resolve_step(tag, e.step)
        if e.kind == "scalar":
            self._safe(self.backend.write_scalar, tag, e.payload, step, e.wall_time)
        elif e.kind == "hist":
            self._safe(self.backend.write_hist, tag, e.payload, step, e.wall_time)
        else:
            self._safe(self.backend.write_text, tag, e.payload, step, e.wall_time)

    def _resolve_step(self, tag: str, step: int | None) -> int:
        step = self._steps.get(tag, -1) + 1 if step is None else int(step)
        self._steps[tag] = step
        return step

    @staticmethod
    def _safe(fn, *args) -> None:
        # The writer thread must outlive individual backend failures.
        try:
            fn(*args)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("[QueuedWriter] Backend call {} failed: {}", fn.__name__, exc)
