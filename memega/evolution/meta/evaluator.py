from __future__ import annotations

import threading
from typing import Sequence

from loguru import logger
import numpy as np

from memega.evolution.engine.config import CrossoverKind, EvolveConfig, MutationKind
from memega.evolution.engine.core import EvolutionEngine
from memega.evolution.engine.operators import check_operators
from memega.evolution.evaluation.cache import FitnessCache
from memega.evolution.meta.space import HyperParams, HyperParamSpace
from memega.evolution.strategies.distance import euclidean
from memega.exceptions import ConfigurationError, InvalidFitnessError
from memega.problems.base import Evaluator, Genome, Problem


class HyperTarget:
    """An inner problem together with the fitness used to normalise its runs."""

    def __init__(self, problem: Problem, max_fitness: float, cache: FitnessCache | None):
        if max_fitness <= 0:
            raise ConfigurationError("max_fitness must be positive")
        self.problem = problem
        self.max_fitness = max_fitness
        self.cache = cache


class HyperEvaluator(Evaluator):
    """Score a hyper-parameter vector by running inner evolutions.

    For every registered target, ``inner_runs`` independent engines run for
    ``inner_generations`` each. The summary is the mean of
    ``best_fitness / max_fitness`` over all runs minus ``variance_penalty``
    times its variance. Inner runs evaluate serially in the calling thread;
    parallelism belongs to the outer population. Each target keeps one fitness
    cache shared by all of its inner runs.
    """

    def __init__(
        self,
        space: HyperParamSpace,
        base_config: EvolveConfig,
        *,
        inner_runs: int = 3,
        inner_generations: int = 50,
        variance_penalty: float = 1.0,
        seed: int = 0,
        cache_size: int = 100_000,
    ):
        if inner_runs <= 0 or inner_generations <= 0:
            raise ConfigurationError("inner_runs and inner_generations must be positive")
        if variance_penalty < 0:
            raise ConfigurationError("variance_penalty must be non-negative")
        self.space = space
        self.base_config = base_config.updated(
            generations=inner_generations,
            target_fitness=None,
            max_workers=1,
            log_interval=0,
        )
        self.inner_runs = inner_runs
        self.variance_penalty = variance_penalty
        self.seed = seed
        self.cache_size = cache_size
        self.targets: list[HyperTarget] = []
        self._lock = threading.Lock()
        self.inner_failures = 0

    def add(self, problem: Problem, max_fitness: float | None = None) -> "HyperEvaluator":
        """Register an inner problem; ``max_fitness`` defaults to ``problem.max_fitness``."""
        self.check_problem(problem)
        if max_fitness is None:
            max_fitness = float(getattr(problem, "max_fitness", 1.0))
        cache = FitnessCache(self.cache_size) if self.cache_size > 0 else None
        self.targets.append(HyperTarget(problem, max_fitness, cache))
        return self

    def check_problem(self, problem: Problem) -> None:
        """Reject a problem that some decodable operator choice cannot vary."""
        base = self.base_config
        crossovers = self.space.choices("crossover") or [base.crossover.kind.value]
        mutations = self.space.choices("mutation") or [base.mutation.kind.value]
        for crossover in crossovers:
            for mutation in mutations:
                try:
                    check_operators(
                        problem,
                        CrossoverKind(crossover),
                        base.mutation.model_copy(update={"kind": MutationKind(mutation)}),
                    )
                except ConfigurationError as exc:
                    raise ConfigurationError(
                        f"Hyper-parameter space does not fit {type(problem).__name__}: {exc}"
                    ) from exc

    def inner_config(self, vector: Sequence[float]) -> EvolveConfig:
        return self.space.decode(vector, self.base_config)

    def inner_seed(self, vector: Sequence[float], target: int, run: int) -> int:
        bits = np.asarray(vector, dtype=np.float64).view(np.uint64)
        seq = np.random.SeedSequence([self.seed, target, run, *(int(b) for b in bits)])
        return int(seq.generate_state(1, dtype=np.uint32)[0])

    def run_scores(self, vector: Sequence[float]) -> list[float]:
        """Normalised best fitness of every inner run, in target/run order."""
        if not self.targets:
            raise ConfigurationError("HyperEvaluator has no problems; call add() first")
        vector = self.space.clamp(vector)
        config = self.inner_config(vector)
        scores: list[float] = []
        for t_idx, target in enumerate(self.targets):
            for run in range(self.inner_runs):
                engine = EvolutionEngine(
                    target.problem,
                    config.updated(random_seed=self.inner_seed(vector, t_idx, run)),
                    cache=target.cache,
                    verbose=False,
                )
                try:
                    result = engine.run()
                except InvalidFitnessError as exc:
                    logger.debug("[HyperEvaluator] Inner run aborted: {}", exc)
                    with self._lock:
                        self.inner_failures += 1
                    scores.append(0.0)
                    continue
                scores.append(max(0.0, result.best_fitness) / target.max_fitness)
        return scores

    def evaluate(self, genome: Genome) -> float:
        scores = np.asarray(self.run_scores(genome), dtype=float)
        return float(scores.mean() - self.variance_penalty * scores.var())


class HyperParamProblem(Problem):
    """Genome space over a HyperParamSpace, scored by a HyperEvaluator."""

    def __init__(self, evaluator: HyperEvaluator):
        self.hyper = evaluator
        self.space = evaluator.space
        self._widths = [max(p.high - p.low, 1e-12) for p in self.space.params]

    def random_genome(self, rng: np.random.Generator) -> Genome:
        return self.space.random(rng)

    def random_gene(self, locus: int, rng: np.random.Generator) -> float:
        return self.space.params[locus].sample(rng)

    def gene_bounds(self, locus: int) -> tuple[float, float]:
        p = self.space.params[locus]
        return p.low, p.high

    def repair(self, genome: Genome) -> Genome:
        return self.space.clamp(genome)

    def distance(self, a: Genome, b: Genome) -> float:
        # Compare in unit-scaled coordinates so wide ranges do not dominate.
        return euclidean(
            [x / w for x, w in zip(a, self._widths)],
            [y / w for y, w in zip(b, self._widths)],
        )

    def evaluate(self, genome: Genome) -> float:
        return self.hyper.evaluate(genome)

    def describe(self, genome: HyperParams) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.space.describe(genome).items())
