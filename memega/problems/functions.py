"""Continuous benchmark functions, converted to maximisation by ``1 / (1 + f)``."""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from memega.evolution.strategies.distance import euclidean
from memega.problems.base import Evaluator, Genome, InverseTransform, Problem


def ackley(x: np.ndarray) -> float:
    a, b, c = 20.0, 0.2, 2.0 * math.pi
    d = len(x)
    squares = -b * math.sqrt(float(np.sum(x * x)) / d)
    cos = float(np.sum(np.cos(c * x))) / d
    return max(0.0, -a * math.exp(squares) - math.exp(cos) + a + math.e)


def griewank(x: np.ndarray) -> float:
    idx = np.sqrt(np.arange(1, len(x) + 1, dtype=float))
    return max(0.0, 1.0 + float(np.sum(x * x)) / 4000.0 - float(np.prod(np.cos(x / idx))))


def rastrigin(x: np.ndarray) -> float:
    a = 10.0
    return float(np.sum(a + x * x - a * np.cos(2.0 * math.pi * x)))


FUNCTIONS: dict[str, tuple[Callable[[np.ndarray], float], float, float]] = {
    "ackley": (ackley, -32.768, 32.768),
    "griewank": (griewank, -10000.0, 10000.0),
    "rastrigin": (rastrigin, -5.12, 5.12),
}


class _Objective(Evaluator):
    def __init__(self, fn: Callable[[np.ndarray], float]):
        self.fn = fn

    def evaluate(self, genome: Genome) -> float:
        return self.fn(np.asarray(genome, dtype=float))


class FunctionProblem(Problem):
    """Real-valued vector of ``dim`` genes bounded by the function's domain."""

    def __init__(self, name: str = "ackley", dim: int = 2):
        if name not in FUNCTIONS:
            raise ValueError(f"Unknown function '{name}', expected one of {sorted(FUNCTIONS)}")
        if dim <= 0:
            raise ValueError("dim must be positive")
        fn, self.low, self.high = FUNCTIONS[name]
        self.name = name
        self.dim = dim
        self._fitness = InverseTransform(_Objective(fn))

    @property
    def max_fitness(self) -> float:
        return 1.0

    def random_gene(self, locus: int, rng: np.random.Generator) -> float:
        return float(rng.uniform(self.low, self.high))

    def random_genome(self, rng: np.random.Generator) -> Genome:
        return tuple(float(v) for v in rng.uniform(self.low, self.high, size=self.dim))

    def gene_bounds(self, locus: int) -> tuple[float, float]:
        return self.low, self.high

    def repair(self, genome: Genome) -> Genome:
        return tuple(min(self.high, max(self.low, float(v))) for v in genome)

    def distance(self, a: Genome, b: Genome) -> float:
        return euclidean(a, b)

    def evaluate(self, genome: Genome) -> float:
        return self._fitness.evaluate(genome)
