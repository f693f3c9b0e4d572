from __future__ import annotations

from pathlib import Path
from typing import Any

from tensorboardX import SummaryWriter

from memega.utils.trackers.configs import TensorBoardConfig
from memega.utils.trackers.core import MetricBackend


class TensorBoardBackend(MetricBackend):
    """Event-file backend; ``logdir`` is created on open."""

    def __init__(self, cfg: TensorBoardConfig):
        self.cfg = cfg
        self._writer: SummaryWriter | None = None

    @property
    def logdir(self) -> Path:
        return Path(self.cfg.logdir).resolve()

    def open(self) -> None:
        self.logdir.mkdir(parents=True, exist_ok=True)
        self._writer = SummaryWriter(str(self.logdir), **self.cfg.summary_writer_kwargs)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    def _active(self) -> SummaryWriter:
        if self._writer is None:
            raise RuntimeError("TensorBoardBackend used before open() or after close()")
        return self._writer

    def write_scalar(self, tag: str, value: float, step: int, wall_time: float) -> None:
        self._active().add_scalar(tag, value, global_step=step, walltime=wall_time)

    def write_hist(self, tag: str, values: Any, step: int, wall_time: float) -> None:
        self._active().add_histogram(tag, values, global_step=step, walltime=wall_time)

    def write_text(self, tag: str, text: str, step: int, wall_time: float) -> None:
        self._active().add_text(tag, text, global_step=step, walltime=wall_time)

    def flush(self) -> None:
        if self._writer is not None:
            self._writer.flush()
