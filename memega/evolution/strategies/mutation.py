"""Mutation operators.

Every operator takes the per-run ``rate`` in [0, 1]. Per-gene operators flip
one coin per locus; the substring operators (scramble, inversion) and random
reset act at most once per genome with probability ``rate``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import math
from typing import TYPE_CHECKING, Any, Literal

import numpy as np

if TYPE_CHECKING:
    from memega.problems.base import Problem


def _check_rate(rate: float) -> None:
    if not 0.0 <= rate <= 1.0:
        raise ValueError(f"Mutation rate must be in [0, 1], got {rate}")


def _clamp(value: float, bounds: tuple[float, float] | None) -> float:
    if bounds is None:
        return value
    lo, hi = bounds
    return min(hi, max(lo, value))


def _clamp_int(value: float, bounds: tuple[float, float] | None) -> int:
    """Nearest integer to ``value`` inside ``bounds``, whose ends are rounded inwards."""
    value = int(round(value))
    if bounds is None:
        return value
    lo, hi = bounds
    return min(math.floor(hi), max(math.ceil(lo), value))


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(
        value, (bool, np.bool_)
    )


def _segment(n: int, rng: np.random.Generator) -> tuple[int, int]:
    i0, i1 = sorted(int(v) for v in rng.integers(0, n, size=2))
    return i0, i1


class Mutator(ABC):
    #: True when the operator only reorders genes.
    preserves_permutation: bool = False

    def __call__(
        self, genome: tuple, rate: float, rng: np.random.Generator, problem: "Problem"
    ) -> tuple:
        _check_rate(rate)
        if not genome or rate == 0.0:
            return genome
        return self.mutate(genome, rate, rng, problem)

    @abstractmethod
    def mutate(
        self, genome: tuple, rate: float, rng: np.random.Generator, problem: "Problem"
    ) -> tuple:
        pass


class SingleReplacementMutation(Mutator):
    """Replace each gene with probability ``rate``.

    ``uniform`` draws the replacement from the problem's allele distribution.
    ``normal`` perturbs the current value with a Gaussian whose sigma is
    ``sigma`` times the locus' bounds width (or ``sigma`` itself when the locus
    is unbounded), then clamps to the bounds.
    """

    def __init__(self, distribution: Literal["uniform", "normal"] = "uniform", sigma: float = 0.1):
        if distribution not in ("uniform", "normal"):
            raise ValueError(f"Unknown distribution '{distribution}'")
        if sigma <= 0:
            raise ValueError("sigma must be positive")
        self.distribution = distribution
        self.sigma = sigma

    def mutate(self, genome, rate, rng, problem):
        out = list(genome)
        for i in np.flatnonzero(rng.random(len(out)) < rate):
            i = int(i)
            if self.distribution == "uniform":
                out[i] = problem.random_gene(i, rng)
            else:
                out[i] = self._perturb(out[i], problem.gene_bounds(i), rng)
        return tuple(out)

    def _perturb(self, value, bounds, rng: np.random.Generator):
        scale = self.sigma * (bounds[1] - bounds[0]) if bounds else self.sigma
        moved = float(value) + float(rng.normal(0.0, scale))
        if isinstance(value, (int, np.integer)):
            return _clamp_int(moved, bounds)
        return _clamp(moved, bounds)


class RandomResetMutation(Mutator):
    """With probability ``rate``, reset one random locus to a fresh allele."""

    def mutate(self, genome, rate, rng, problem):
        if rng.random() >= rate:
            return genome
        out = list(genome)
        i = int(rng.integers(0, len(out)))
        out[i] = problem.random_gene(i, rng)
        return tuple(out)


class SwapMutation(Mutator):
    """Each locus, with probability ``rate``, swaps with another random locus."""

    preserves_permutation = True

    def mutate(self, genome, rate, rng, problem):
        out = list(genome)
        n = len(out)
        for i in np.flatnonzero(rng.random(n) < rate):
            j = int(rng.integers(0, n))
            out[i], out[j] = out[j], out[i]
        return tuple(out)


class ScrambleMutation(Mutator):
    """With probability ``rate``, shuffle a random contiguous substring."""

    preserves_permutation = True

    def mutate(self, genome, rate, rng, problem):
        if rng.random() >= rate:
            return genome
        i0, i1 = _segment(len(genome), rng)
        segment = list(genome[i0 : i1 + 1])
        order = rng.permutation(len(segment))
        return (*genome[:i0], *(segment[k] for k in order), *genome[i1 + 1 :])


class InversionMutation(Mutator):
    """With probability ``rate``, reverse a random contiguous substring."""

    preserves_permutation = True

    def mutate(self, genome, rate, rng, problem):
        if rng.random() >= rate:
            return genome
        i0, i1 = _segment(len(genome), rng)
        return (*genome[:i0], *reversed(genome[i0 : i1 + 1]), *genome[i1 + 1 :])


class CreepMutation(Mutator):
    """Add a bounded random delta to numeric genes.

    Each gene creeps with probability ``rate`` by a uniform delta in
    ``[-b, b]``, where ``b`` is ``large_bound`` with probability
    ``large_probability`` and ``small_bound`` otherwise. Integer genes move by
    whole steps. The result is clamped to the locus bounds, so the change never
    exceeds ``large_bound``.
    """

    def __init__(
        self,
        small_bound: float = 1.0,
        large_bound: float = 10.0,
        large_probability: float = 0.1,
    ):
        if small_bound < 0 or large_bound < small_bound:
            raise ValueError("Creep bounds must satisfy 0 <= small_bound <= large_bound")
        if not 0.0 <= large_probability <= 1.0:
            raise ValueError("large_probability must be in [0, 1]")
        self.small_bound = small_bound
        self.large_bound = large_bound
        self.large_probability = large_probability

    def mutate(self, genome, rate, rng, problem):
        out = list(genome)
        for i in np.flatnonzero(rng.random(len(out)) < rate):
            i = int(i)
            value = out[i]
            if not _is_numeric(value):
                raise TypeError(f"Creep mutation needs numeric genes, got {type(value).__name__}")
            bound = self.large_bound if rng.random() < self.large_probability else self.small_bound
            if isinstance(value, (int, np.integer)):
                step = math.floor(bound)
                moved = int(value) + int(rng.integers(-step, step + 1))
                out[i] = _clamp_int(moved, problem.gene_bounds(i))
            else:
                moved = float(value) + float(rng.uniform(-bound, bound))
                out[i] = _clamp(moved, problem.gene_bounds(i))
        return tuple(out)
