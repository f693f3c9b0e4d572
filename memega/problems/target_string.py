from __future__ import annotations

from typing import Any

import numpy as np

from memega.evolution.strategies.distance import count_different
from memega.problems.base import Genome, Problem

PRINTABLE_LOW = 32
PRINTABLE_HIGH = 126


class TargetStringProblem(Problem):
    """Evolve a string of printable ASCII towards ``target``.

    Fitness is the number of matching characters plus one, so it is always
    positive and reaches ``len(target) + 1`` at the optimum.
    """

    def __init__(self, target: str = "Hello world!"):
        if not target:
            raise ValueError("target must be a non-empty string")
        self.target: Genome = tuple(target)

    @property
    def max_fitness(self) -> float:
        return float(len(self.target) + 1)

    def random_gene(self, locus: int, rng: np.random.Generator) -> Any:
        return chr(int(rng.integers(PRINTABLE_LOW, PRINTABLE_HIGH + 1)))

    def random_genome(self, rng: np.random.Generator) -> Genome:
        return tuple(self.random_gene(i, rng) for i in range(len(self.target)))

    def evaluate(self, genome: Genome) -> float:
        return float(len(self.target) - count_different(genome, self.target) + 1)

    def describe(self, genome: Genome) -> str:
        return "".join(genome)
