from __future__ import annotations

import math

from memega.evolution.engine.metrics import GenerationStats
from memega.utils.trackers.base import MetricWriter

_SCALARS = (
    "best_fitness",
    "mean_fitness",
    "duplicate_count",
    "mean_pairwise_distance",
    "species_count",
    "evaluation_failures",
    "evaluations",
    "cache_hits",
)


class TrackerStatsSink:
    """Forward each GenerationStats record to a MetricWriter, one scalar per field.

    Non-finite values (a NaN distance, a -inf best after total failure) are skipped.
    """

    def __init__(self, writer: MetricWriter, prefix: str = "evolution"):
        self.writer = writer.scoped(prefix) if prefix else writer

    def __call__(self, stats: GenerationStats) -> None:
        step = stats.generation_index
        for name in _SCALARS:
            value = float(getattr(stats, name))
            if math.isfinite(value):
                self.writer.scalar(name, value, step=step)
        self.writer.scalar("stagnant", float(stats.stagnant), step=step)
