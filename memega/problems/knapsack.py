from __future__ import annotations

from typing import Any

import numpy as np

from memega.problems.base import Genome, Problem


class KnapsackProblem(Problem):
    """0/1 knapsack over randomly generated items.

    Items are packed greedily in index order; a selected item that would
    exceed the capacity is skipped, so every genome decodes to a feasible load.
    """

    def __init__(
        self,
        num_items: int = 100,
        max_weight: float = 100.0,
        seed: int | None = 0,
    ):
        if num_items <= 0:
            raise ValueError("num_items must be positive")
        rng = np.random.default_rng(seed)
        self.max_weight = float(max_weight)
        self.weights = rng.uniform(0.0, max_weight, size=num_items)
        self.values = rng.uniform(0.1, 10.0, size=num_items) * self.weights

    @property
    def num_items(self) -> int:
        return len(self.weights)

    @property
    def max_fitness(self) -> float:
        # Upper bound from the best value density filling the whole capacity.
        return float(np.max(self.values / self.weights) * self.max_weight)

    def random_gene(self, locus: int, rng: np.random.Generator) -> Any:
        return bool(rng.integers(0, 2))

    def random_genome(self, rng: np.random.Generator) -> Genome:
        return tuple(bool(b) for b in rng.integers(0, 2, size=self.num_items))

    def evaluate(self, genome: Genome) -> float:
        weight = 0.0
        value = 0.0
        for kept, w, v in zip(genome, self.weights, self.values):
            if kept and weight + w <= self.max_weight:
                weight += w
                value += v
        return float(value)
