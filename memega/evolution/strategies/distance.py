"""Genome distance functions and the pairwise distance matrix used by niching."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from memega.problems.base import Problem


def count_different(a: Sequence, b: Sequence) -> int:
    """Hamming distance; the length difference counts as differing positions."""
    common = min(len(a), len(b))
    diff = sum(1 for i in range(common) if a[i] != b[i])
    return diff + max(len(a), len(b)) - common


def euclidean(a: Sequence[float], b: Sequence[float]) -> float:
    """L2 distance, padding the shorter genome with zeros."""
    n = max(len(a), len(b))
    total = 0.0
    for i in range(n):
        d = (a[i] if i < len(a) else 0.0) - (b[i] if i < len(b) else 0.0)
        total += d * d
    return math.sqrt(total)


def kendall_tau(a: Sequence, b: Sequence) -> int:
    """Number of discordant pairs between two equally long orderings."""
    if len(a) != len(b):
        raise ValueError("kendall_tau requires sequences of the same length")
    n = len(a)
    return sum(
        1
        for i in range(n)
        for j in range(i + 1, n)
        if (a[i] < a[j]) != (b[i] < b[j])
    )


class DistanceMatrix:
    """Symmetric matrix of pairwise genome distances for one pool."""

    def __init__(self, values: np.ndarray):
        self.values = values

    @classmethod
    def compute(cls, genomes: Sequence[tuple], problem: "Problem") -> "DistanceMatrix":
        n = len(genomes)
        values = np.zeros((n, n), dtype=float)
        for i in range(n):
            for j in range(i + 1, n):
                d = float(problem.distance(genomes[i], genomes[j]))
                values[i, j] = values[j, i] = d
        return cls(values)

    def __len__(self) -> int:
        return self.values.shape[0]

    def __getitem__(self, idx: tuple[int, int]) -> float:
        return float(self.values[idx])

    def mean(self) -> float:
        n = len(self)
        if n < 2:
            return 0.0
        # Diagonal is zero, so average over off-diagonal pairs only.
        return float(self.values.sum() / (n * (n - 1)))

    def max(self) -> float:
        return float(self.values.max()) if len(self) else 0.0
