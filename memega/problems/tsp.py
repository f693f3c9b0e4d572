from __future__ import annotations

import numpy as np

from memega.evolution.strategies.distance import kendall_tau
from memega.problems.base import Genome, Problem


class TravellingSalesmanProblem(Problem):
    """Closed tour over random cities in the unit square; fitness is ``1 / (1 + length)``."""

    is_permutation = True

    def __init__(self, num_cities: int = 20, seed: int | None = 0):
        if num_cities < 2:
            raise ValueError("num_cities must be at least 2")
        rng = np.random.default_rng(seed)
        self.cities = rng.uniform(0.0, 1.0, size=(num_cities, 2))

    @property
    def num_cities(self) -> int:
        return len(self.cities)

    def random_genome(self, rng: np.random.Generator) -> Genome:
        return tuple(int(c) for c in rng.permutation(self.num_cities))

    def tour_length(self, genome: Genome) -> float:
        order = np.asarray(genome, dtype=int)
        pts = self.cities[order]
        return float(np.sum(np.linalg.norm(pts - np.roll(pts, -1, axis=0), axis=1)))

    def evaluate(self, genome: Genome) -> float:
        if sorted(genome) != list(range(self.num_cities)):
            raise ValueError(f"Not a tour over {self.num_cities} cities: {genome}")
        return 1.0 / (1.0 + self.tour_length(genome))

    def distance(self, a: Genome, b: Genome) -> float:
        return float(kendall_tau(a, b))
