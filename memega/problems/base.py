from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np

from memega.evolution.strategies.distance import count_different

Genome = tuple


class Evaluator(ABC):
    """Fitness function contract.

    ``evaluate`` must be pure and deterministic for a fixed genome: the fitness
    cache relies on it, and so does duplicate computation under concurrency.
    Higher fitness is better.
    """

    @abstractmethod
    def evaluate(self, genome: Genome) -> float:
        pass


class Problem(Evaluator):
    """Genome space plus fitness function.

    The engine treats genomes as opaque immutable tuples; the hooks below are
    what the operator library needs to generate, mutate and compare them.
    """

    #: Permutation crossovers (PMX, edge, order, cycle) require this flag.
    is_permutation: bool = False

    @abstractmethod
    def random_genome(self, rng: np.random.Generator) -> Genome:
        pass

    def random_gene(self, locus: int, rng: np.random.Generator) -> Any:
        """Draw a fresh allele for ``locus``."""
        raise NotImplementedError(
            f"{type(self).__name__} does not define an allele distribution"
        )

    def gene_bounds(self, locus: int) -> tuple[float, float] | None:
        """Inclusive numeric bounds for ``locus``, or None when unbounded."""
        return None

    def distance(self, a: Genome, b: Genome) -> float:
        return float(count_different(a, b))

    def repair(self, genome: Genome) -> Genome:
        """Map a genome back into the valid domain after variation."""
        return genome

    def describe(self, genome: Genome) -> str:
        return repr(genome)


class WeightedSumEvaluator(Evaluator):
    """Combine several objectives into one fitness by a weighted sum."""

    def __init__(self, evaluators: Sequence[Evaluator], weights: Sequence[float] | None = None):
        if not evaluators:
            raise ValueError("WeightedSumEvaluator needs at least one evaluator")
        weights = list(weights) if weights is not None else [1.0] * len(evaluators)
        if len(weights) != len(evaluators):
            raise ValueError(
                f"Got {len(weights)} weights for {len(evaluators)} evaluators"
            )
        self.evaluators = list(evaluators)
        self.weights = weights

    def evaluate(self, genome: Genome) -> float:
        return sum(w * e.evaluate(genome) for w, e in zip(self.weights, self.evaluators))


class InverseTransform(Evaluator):
    """Turn a non-negative minimisation objective ``f`` into ``1 / (1 + f)``."""

    def __init__(self, objective: Evaluator):
        self.objective = objective

    def evaluate(self, genome: Genome) -> float:
        return 1.0 / (1.0 + self.objective.evaluate(genome))
