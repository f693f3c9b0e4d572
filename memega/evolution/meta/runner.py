from __future__ import annotations

import threading
from typing import Any, Iterable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from memega.evolution.engine.config import EvolveConfig
from memega.evolution.engine.core import EvolutionEngine, StatsSink
from memega.evolution.engine.metrics import GenerationStats
from memega.evolution.evaluation.worker_pool import WorkerPool
from memega.evolution.meta.evaluator import HyperEvaluator, HyperParamProblem
from memega.evolution.meta.space import HyperParams


class MetaConfig(BaseModel):
    """Outer-loop settings; the inner loops are described by the HyperEvaluator."""

    population_size: int = Field(default=20, gt=0)
    generations: int = Field(default=10, gt=0)
    mutation_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    mutation_sigma: float = Field(default=0.1, gt=0.0, description="Relative to each range")
    crossover_rate: float = Field(default=0.7, ge=0.0, le=1.0)
    survival_proportion: float = Field(default=0.5, gt=0.0, le=1.0)
    random_seed: int | None = Field(default=None, ge=0)
    max_workers: int | None = Field(default=None, gt=0)
    log_interval: int = Field(default=1, ge=0)

    def outer_config(self) -> EvolveConfig:
        return EvolveConfig.from_dict(
            {
                "population_size": self.population_size,
                "generations": self.generations,
                "selection": "sus",
                "crossover": {"kind": "uniform", "rate": self.crossover_rate},
                "mutation": {
                    "kind": "single_replacement",
                    "distribution": "normal",
                    "sigma": self.mutation_sigma,
                    "rate": self.mutation_rate,
                },
                "survival": {"kind": "top_proportion", "proportion": self.survival_proportion},
                "random_seed": self.random_seed,
                "max_workers": self.max_workers,
                "log_interval": self.log_interval,
            }
        )


class HyperCandidate(BaseModel):
    vector: HyperParams
    config: EvolveConfig
    fitness: float
    description: dict[str, Any]


class MetaResult(BaseModel):
    candidates: list[HyperCandidate] = Field(description="Best first")
    stats: list[GenerationStats] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def best(self) -> HyperCandidate:
        return self.candidates[0]


class MetaEvolution:
    """Evolve hyper-parameter vectors with an outer EvolutionEngine.

    The outer ParallelEvaluator spreads candidates over the shared worker pool;
    each candidate's inner runs execute one after another inside its worker.
    """

    def __init__(
        self,
        evaluator: HyperEvaluator,
        config: MetaConfig | None = None,
        *,
        sinks: Iterable[StatsSink] = (),
    ):
        self.hyper = evaluator
        self.config = config or MetaConfig()
        self.problem = HyperParamProblem(evaluator)
        self.engine = EvolutionEngine(self.problem, self.config.outer_config(), sinks=sinks)
        self._warn_oversubscription()

    def _warn_oversubscription(self) -> None:
        available = WorkerPool.default_max_workers()
        requested = self.config.max_workers or available
        concurrent = min(self.config.population_size, requested)
        logger.info(
            "[MetaEvolution] Init | outer_pop={}, inner_runs={}, targets={}, concurrent_candidates={}",
            self.config.population_size,
            self.hyper.inner_runs,
            len(self.hyper.targets),
            concurrent,
        )
        if requested > available:
            logger.warning(
                "[MetaEvolution] max_workers={} exceeds shared pool size {}; extra tasks will queue",
                requested,
                available,
            )

    def run(
        self, *, cancel: threading.Event | None = None, timeout: float | None = None
    ) -> MetaResult:
        result = self.engine.run(cancel=cancel, timeout=timeout)
        seen: set[HyperParams] = set()
        candidates: list[HyperCandidate] = []
        for ind in result.population.ranked():
            if ind.genome in seen:
                continue
            seen.add(ind.genome)
            candidates.append(
                HyperCandidate(
                    vector=ind.genome,
                    config=self.hyper.inner_config(ind.genome),
                    fitness=ind.fitness,
                    description=self.hyper.space.describe(ind.genome),
                )
            )
        logger.info(
            "[MetaEvolution] Done | best={:.4f}, {}",
            candidates[0].fitness,
            self.problem.describe(candidates[0].vector),
        )
        return MetaResult(candidates=candidates, stats=result.stats)

    def stop(self) -> None:
        self.engine.stop()
