from __future__ import annotations

from collections import deque
from datetime import datetime
import math

from pydantic import BaseModel, ConfigDict, Field, computed_field


class GenerationStats(BaseModel):
    """Immutable per-generation summary emitted after the survival step."""

    generation_index: int = Field(ge=0)
    best_fitness: float
    mean_fitness: float
    duplicate_count: int = Field(ge=0)
    mean_pairwise_distance: float = Field(description="NaN when distances were not computed")
    species_count: int = Field(ge=0)
    evaluation_failures: int = Field(default=0, ge=0)
    evaluations: int = Field(default=0, ge=0, description="Evaluator invocations this generation")
    cache_hits: int = Field(default=0, ge=0)
    stagnant: bool = False

    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> dict[str, int | float | bool]:
        return self.model_dump()


class EngineMetrics(BaseModel):
    """Run-long counters for one EvolutionEngine."""

    total_generations: int = Field(default=0, description="Generations completed")
    evaluations: int = Field(default=0, description="Total evaluator invocations")
    evaluation_failures: int = Field(default=0, description="Evaluations that failed")
    cache_hits: int = Field(default=0, description="Evaluations answered by the cache")
    stagnant_generations: int = Field(
        default=0, description="Consecutive generations without best-fitness improvement"
    )
    last_generation_time: datetime | None = Field(default=None)
    best_improvements: deque = Field(
        default_factory=lambda: deque(maxlen=10),
        description="Rolling window of best-fitness gains per generation",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @computed_field
    @property
    def avg_improvement(self) -> float:
        finite = [v for v in self.best_improvements if math.isfinite(v)]
        return sum(finite) / max(1, len(finite))

    def to_dict(self) -> dict[str, int | float | str | None]:
        return {
            "total_generations": self.total_generations,
            "evaluations": self.evaluations,
            "evaluation_failures": self.evaluation_failures,
            "cache_hits": self.cache_hits,
            "stagnant_generations": self.stagnant_generations,
            "avg_improvement": self.avg_improvement,
        }
