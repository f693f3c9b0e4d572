from __future__ import annotations

import math
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from memega.evolution.evaluation.cache import FitnessCache
from memega.evolution.evaluation.worker_pool import WorkerPool
from memega.evolution.population import WORST_FITNESS, Population
from memega.exceptions import ConfigurationError, EvaluationFailure

if TYPE_CHECKING:
    from memega.problems.base import Evaluator, Genome


class EvaluationReport(BaseModel):
    """Outcome of one evaluation barrier."""

    population: Population
    evaluations: int = Field(default=0, description="Evaluator invocations")
    cache_hits: int = Field(default=0, description="Genomes answered from the cache")
    failures: list[EvaluationFailure] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


_Outcome = tuple[float, EvaluationFailure | None]


class ParallelEvaluator:
    """Fill in missing fitness values across the shared worker pool.

    Only individuals without fitness are evaluated. With a cache, hits are
    answered in the calling thread and the remaining genomes are deduplicated,
    so each distinct genome reaches the evaluator at most once per call and
    the evaluation and hit counts depend only on the population. The work is
    split into at most ``max_workers`` contiguous partitions, one pool task
    each, and the call returns once every partition is done. A failing
    evaluation does not abort the batch: the individual gets ``WORST_FITNESS``
    and the failure is reported. A ``ConfigurationError`` is not a per-genome
    failure and propagates.
    """

    def __init__(
        self,
        evaluator: "Evaluator",
        cache: FitnessCache | None = None,
        max_workers: int | None = None,
    ):
        if max_workers is not None and max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self.evaluator = evaluator
        self.cache = cache
        self.max_workers = max_workers or WorkerPool.default_max_workers()

    def evaluate(self, population: Population) -> EvaluationReport:
        pending = population.unevaluated()
        if not pending:
            return EvaluationReport(population=population)

        genomes = [population[i].genome for i in pending]
        outcomes: list[_Outcome | None] = [None] * len(genomes)
        if self.cache is None:
            groups = [[pos] for pos in range(len(genomes))]
        else:
            groups = self._resolve_cached(genomes, outcomes)

        work = [genomes[group[0]] for group in groups]
        for group, outcome in zip(groups, self._run(work)):
            for pos in group:
                outcomes[pos] = outcome

        individuals = list(population.individuals)
        failures: list[EvaluationFailure] = []
        for idx, (fitness, failure) in zip(pending, outcomes):
            individuals[idx] = individuals[idx].evaluated(fitness)
            if failure is not None:
                failures.append(failure)

        if failures:
            logger.debug(
                "[ParallelEvaluator] {} of {} evaluations failed", len(failures), len(pending)
            )
        return EvaluationReport(
            population=Population(individuals),
            evaluations=len(work),
            cache_hits=len(genomes) - len(work),
            failures=failures,
        )

    def _resolve_cached(
        self, genomes: list["Genome"], outcomes: list[_Outcome | None]
    ) -> list[list[int]]:
        """Fill cache hits into ``outcomes``; return miss positions grouped by genome."""
        misses: dict["Genome", list[int]] = {}
        for pos, genome in enumerate(genomes):
            if genome in misses:
                misses[genome].append(pos)
                continue
            cached = self.cache.get(genome)
            if cached is None:
                misses[genome] = [pos]
            else:
                outcomes[pos] = (cached, None)
        return list(misses.values())

    def _run(self, genomes: list["Genome"]) -> list[_Outcome]:
        workers = min(self.max_workers, len(genomes))
        if workers <= 1 or WorkerPool.in_worker():
            return self._evaluate_chunk(genomes)
        bounds = [len(genomes) * k // workers for k in range(workers + 1)]
        executor = WorkerPool.get_executor()
        futures = [
            executor.submit(self._evaluate_chunk, genomes[lo:hi])
            for lo, hi in zip(bounds, bounds[1:])
        ]
        outcomes: list[_Outcome] = []
        for fut in futures:
            outcomes.extend(fut.result())
        return outcomes

    def _evaluate_chunk(self, genomes: list["Genome"]) -> list[_Outcome]:
        return [self._evaluate_one(g) for g in genomes]

    def _evaluate_one(self, genome: "Genome") -> _Outcome:
        try:
            fitness = float(self.evaluator.evaluate(genome))
        except ConfigurationError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("[ParallelEvaluator] Evaluation failed: {}", exc)
            return WORST_FITNESS, EvaluationFailure(genome, exc)
        if math.isnan(fitness):
            return WORST_FITNESS, EvaluationFailure(genome, "fitness is NaN")
        if self.cache is not None:
            self.cache.put(genome, fitness)
        return fitness, None
