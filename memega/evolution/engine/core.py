from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import math
import threading
import time
from typing import Any, Callable, Iterable, Mapping, Sequence

from loguru import logger
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from memega.evolution.engine.config import EvolveConfig, StagnationKind
from memega.evolution.engine.metrics import EngineMetrics, GenerationStats
from memega.evolution.engine.operators import (
    build_crossover,
    build_mutator,
    build_niching,
    build_selector,
    build_survivor,
    check_operators,
)
from memega.evolution.evaluation.cache import FitnessCache
from memega.evolution.evaluation.parallel import EvaluationReport, ParallelEvaluator
from memega.evolution.population import Individual, Population
from memega.evolution.strategies.niching import NichingReport
from memega.exceptions import (
    ConfigurationError,
    EvolutionError,
    InvalidFitnessError,
    MemegaError,
)
from memega.problems.base import Evaluator, Genome, Problem

__all__ = ["EvolutionEngine", "EvolveResult", "StatsSink", "StopReason"]

StatsSink = Callable[[GenerationStats], None]

#: Attempts at refilling offspring when duplicates are disallowed.
DUPLICATE_RETRIES = 3


class StopReason(str, Enum):
    GENERATIONS = "generations"
    TARGET = "target_fitness"
    CANCELLED = "cancelled"
    DEADLINE = "deadline"


class EvolveResult(BaseModel):
    population: Population
    stats: list[GenerationStats] = Field(default_factory=list)
    stop_reason: StopReason

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def best(self) -> Individual | None:
        return self.population.best()

    @property
    def best_fitness(self) -> float:
        return self.population.best_fitness()


class EvolutionEngine:
    """
    Generational loop over one problem:
    Init -> Evaluate -> Select -> Reproduce -> Evaluate offspring -> Niche -> Survive.

    - The parent population and its offspring form the pool that niching and
      survival act on; parents keep their fitness, so only offspring reach the
      evaluator.
    - Survivors above ``population_size`` are cut by rank; free slots are filled
      with the remaining pool members, offspring first.
    - Cancellation and deadlines are honoured between generations only.
    """

    def __init__(
        self,
        problem: Problem,
        config: EvolveConfig | Mapping[str, Any],
        *,
        evaluator: Evaluator | None = None,
        cache: FitnessCache | None = None,
        sinks: Iterable[StatsSink] = (),
        initial_genomes: Sequence[Genome] | None = None,
        verbose: bool = True,
    ):
        if not isinstance(config, EvolveConfig):
            config = EvolveConfig.from_dict(config)
        self.problem = problem
        self.config = config
        self._initial_genomes = [tuple(g) for g in initial_genomes or ()]
        self._validate()

        if cache is None and config.cache_size > 0:
            cache = FitnessCache(config.cache_size, config.cache_shards)
        self.cache = cache
        self.evaluator = ParallelEvaluator(
            evaluator or problem, cache=cache, max_workers=config.max_workers
        )
        self.selector = build_selector(config.selection)
        self.crossover = build_crossover(config.crossover)
        self.mutator = build_mutator(config.mutation)
        self.niching = build_niching(config.niching)
        self.survivor = build_survivor(config.survival)
        self.sinks: list[StatsSink] = list(sinks)

        self._seed_seq = np.random.SeedSequence(config.random_seed)
        self._rng = np.random.default_rng(self._seed_seq.spawn(1)[0])
        self._cancel = threading.Event()
        self._running = False
        self._lifecycle_level = "INFO" if verbose else "DEBUG"
        self._last_best: float | None = None

        self.population: Population | None = None
        self.stats: list[GenerationStats] = []
        self.metrics = EngineMetrics()

        logger.log(
            self._lifecycle_level,
            "[EvolutionEngine] Init | problem={}, pop={}, selection={}, crossover={}, mutation={}, niching={}, survival={}",
            type(problem).__name__,
            config.population_size,
            config.selection.value,
            config.crossover.kind.value,
            config.mutation.kind.value,
            config.niching.kind.value,
            config.survival.kind.value,
        )

    def _validate(self) -> None:
        cfg = self.config
        check_operators(self.problem, cfg.crossover.kind, cfg.mutation)
        if len(self._initial_genomes) > cfg.population_size:
            raise ConfigurationError("More initial genomes than population_size")

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(
        self,
        *,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
    ) -> EvolveResult:
        """Evolve until a terminal condition and return the final population.

        ``cancel`` and ``timeout`` (seconds) stop the run between generations;
        the best population reached so far is returned rather than an error.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        logger.log(self._lifecycle_level, "[EvolutionEngine] Start")
        self._running = True
        try:
            if self.population is None:
                self.initialize()
            while True:
                reason = self._terminal_reason(cancel, deadline)
                if reason is not None:
                    logger.log(
                        self._lifecycle_level,
                        "[EvolutionEngine] Stop: {} | generation={}, best={:.6f}",
                        reason.value,
                        self.metrics.total_generations,
                        self.population.best_fitness(),
                    )
                    return EvolveResult(
                        population=self.population, stats=list(self.stats), stop_reason=reason
                    )
                self.step()
        finally:
            self._running = False

    def initialize(self) -> GenerationStats:
        """Build, evaluate and niche the initial population (generation 0)."""
        size = self.config.population_size
        genomes = [self.problem.repair(g) for g in self._initial_genomes[:size]]
        while len(genomes) < size:
            genomes.append(self.problem.random_genome(self._rng))
        report = self._guarded(self.evaluator.evaluate, Population.from_genomes(genomes))
        population, niche = self._guarded(self.niching, report.population, self.problem)
        self.population = population
        return self._record(0, report, niche)

    def step(self) -> GenerationStats:
        """Run exactly one generation."""
        if self.population is None:
            self.initialize()
        generation = self.metrics.total_generations + 1
        try:
            return self._step(generation)
        except InvalidFitnessError as exc:
            exc.generation = generation
            exc.stats = list(self.stats)
            logger.error("[EvolutionEngine] Abort at generation {}: {}", generation, exc)
            raise
        except MemegaError:
            raise
        except Exception as exc:
            raise EvolutionError(f"Evolution step failed: {exc}") from exc

    def _step(self, generation: int) -> GenerationStats:
        size = self.config.population_size
        parents = self.population

        stagnant = self._stagnation_triggered()
        offspring = self._breed(parents, size, stagnant)
        report = self.evaluator.evaluate(parents + Population.from_genomes(offspring))

        pool, niche = self.niching(report.population, self.problem)
        self.population = Population(self._survive(pool, len(parents)))
        return self._record(generation, report, niche, stagnant=stagnant)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _breed(self, parents: Population, count: int, stagnant: bool) -> list[Genome]:
        seen = {ind.genome for ind in parents}
        offspring: list[Genome] = []
        attempts = 1 if self.config.allow_duplicates else DUPLICATE_RETRIES
        for _ in range(attempts):
            missing = count - len(offspring)
            if missing <= 0:
                break
            batch = self._reproduce(parents, missing)
            if stagnant:
                batch = self._inject_random(batch)
            if self.config.allow_duplicates:
                offspring.extend(batch)
                continue
            for genome in batch:
                if genome not in seen:
                    seen.add(genome)
                    offspring.append(genome)
        return offspring[:count]

    def _reproduce(self, parents: Population, count: int) -> list[Genome]:
        cfg = self.config
        selected = self.selector(parents.individuals, count + count % 2, self._rng)
        pair_seeds = self._seed_seq.spawn(len(selected) // 2)
        children: list[Genome] = []
        for seed, a, b in zip(pair_seeds, selected[0::2], selected[1::2]):
            rng = np.random.default_rng(seed)
            g1, g2 = a.genome, b.genome
            if rng.random() < cfg.crossover.rate:
                g1, g2 = self.crossover(g1, g2, rng)
            for g in (g1, g2):
                mutated = self.mutator(g, cfg.mutation.rate, rng, self.problem)
                children.append(self.problem.repair(mutated))
        return children[:count]

    def _inject_random(self, genomes: list[Genome]) -> list[Genome]:
        k = math.floor(self.config.stagnation.replace_proportion * len(genomes))
        if k == 0:
            return genomes
        idx = self._rng.choice(len(genomes), size=k, replace=False)
        out = list(genomes)
        for i in idx:
            out[int(i)] = self.problem.random_genome(self._rng)
        logger.debug("[EvolutionEngine] Stagnant: replaced {} offspring with random genomes", k)
        return out

    def _survive(self, pool: Population, num_parents: int) -> list[Individual]:
        size = self.config.population_size
        elites = self.survivor(pool.individuals)
        if len(elites) > size:
            elites = Population(elites).ranked()[:size]
        kept = {id(ind) for ind in elites}
        # Offspring come after the parents in the pool and fill free slots first.
        order = [*pool.individuals[num_parents:], *pool.individuals[:num_parents]]
        rest = [ind for ind in order if id(ind) not in kept]
        return [*elites, *rest[: size - len(elites)]]

    def _stagnation_triggered(self) -> bool:
        stagnation = self.config.stagnation
        if stagnation.kind == StagnationKind.NONE:
            return False
        if self.metrics.stagnant_generations < stagnation.generations:
            return False
        if stagnation.kind == StagnationKind.ONE_SHOT:
            self.metrics.stagnant_generations = 0
        return True

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _record(
        self,
        generation: int,
        report: EvaluationReport,
        niche: NichingReport,
        *,
        stagnant: bool = False,
    ) -> GenerationStats:
        population = self.population
        best = population.best_fitness()
        stats = GenerationStats(
            generation_index=generation,
            best_fitness=best,
            mean_fitness=population.mean_fitness(),
            duplicate_count=population.duplicate_count(),
            mean_pairwise_distance=niche.mean_distance,
            species_count=niche.species_count,
            evaluation_failures=report.failure_count,
            evaluations=report.evaluations,
            cache_hits=report.cache_hits,
            stagnant=stagnant,
        )
        self.stats.append(stats)

        m = self.metrics
        if generation > 0:
            m.total_generations = generation
        m.evaluations += report.evaluations
        m.evaluation_failures += report.failure_count
        m.cache_hits += report.cache_hits
        m.last_generation_time = datetime.now(timezone.utc)
        if self._last_best is not None:
            improved = best > self._last_best and not math.isclose(best, self._last_best)
            m.stagnant_generations = 0 if improved else m.stagnant_generations + 1
            m.best_improvements.append(best - self._last_best)
        self._last_best = best

        for sink in self.sinks:
            sink(stats)
        if self._every(generation, self.config.log_interval):
            self._log_metrics(stats)
        return stats

    def _terminal_reason(
        self, cancel: threading.Event | None, deadline: float | None
    ) -> StopReason | None:
        cfg = self.config
        if cfg.target_fitness is not None and self.population.best_fitness() >= cfg.target_fitness:
            return StopReason.TARGET
        if cfg.generations is not None and self.metrics.total_generations >= cfg.generations:
            return StopReason.GENERATIONS
        if self._cancel.is_set() or (cancel is not None and cancel.is_set()):
            return StopReason.CANCELLED
        if deadline is not None and time.monotonic() >= deadline:
            return StopReason.DEADLINE
        return None

    def _guarded(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except MemegaError:
            raise
        except Exception as exc:
            raise EvolutionError(f"Initialisation failed: {exc}") from exc

    @staticmethod
    def _every(i: int, n: int) -> bool:
        return n > 0 and i % n == 0

    def _log_metrics(self, stats: GenerationStats) -> None:
        m = {**stats.to_dict(), **self.metrics.to_dict()}
        metrics_str = " | ".join(
            f"{k}={v:.4f}" if isinstance(v, float) else f"{k}={v}" for k, v in m.items()
        )
        logger.info("[EvolutionEngine] | {}", metrics_str)

    def stop(self) -> None:
        """Request the run loop to exit after the current generation."""
        self._cancel.set()

    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> dict[str, object]:
        """Light status snapshot for UIs/health checks."""
        return {
            "running": self._running,
            "best_fitness": self.population.best_fitness() if self.population else None,
            **self.metrics.to_dict(),
        }
