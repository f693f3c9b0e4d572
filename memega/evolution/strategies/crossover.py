"""Crossover operators over tuple genomes.

Permutation operators (PMX, edge, order, cycle) build children that are
permutations of the parents' elements by construction; they never repair
after the fact.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

Pair = tuple[tuple, tuple]


def _check_permutations(a: Sequence, b: Sequence) -> None:
    if len(a) != len(b) or len(set(a)) != len(a) or set(a) != set(b):
        raise ValueError(
            "Permutation crossover needs parents that are permutations of the same elements"
        )


def _segment(n: int, rng: np.random.Generator) -> tuple[int, int]:
    """Random inclusive segment ``[i0, i1]`` of a length-``n`` genome."""
    i0, i1 = sorted(int(v) for v in rng.integers(0, n, size=2))
    return i0, i1


class Crossover(ABC):
    requires_permutation: bool = False

    @abstractmethod
    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        pass


# Discrete ------------------------------------------------------------------


def kpoint_crossover_at(a: tuple, b: tuple, points: Sequence[int]) -> Pair:
    """Swap the segments ``[p0, p1), [p2, p3), ...`` between the parents.

    The common length closes the last segment, so a single point ``p`` swaps
    the tails from ``p`` on.
    """
    s1, s2 = list(a), list(b)
    cuts = sorted([*points, min(len(a), len(b))])
    for st, en in zip(cuts[0::2], cuts[1::2]):
        s1[st:en], s2[st:en] = s2[st:en], s1[st:en]
    return tuple(s1), tuple(s2)


class KPointCrossover(Crossover):
    def __init__(self, k: int = 2):
        if k <= 0:
            raise ValueError("k must be positive")
        self.k = k

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        n = min(len(a), len(b))
        if n == 0:
            return a, b
        points = rng.choice(n, size=min(self.k, n), replace=False)
        return kpoint_crossover_at(a, b, [int(p) for p in points])


class UniformCrossover(Crossover):
    """Swap each gene between the parents on a fair coin flip."""

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        n = min(len(a), len(b))
        swap = rng.random(n) < 0.5
        s1, s2 = list(a), list(b)
        for i in np.flatnonzero(swap):
            s1[i], s2[i] = s2[i], s1[i]
        return tuple(s1), tuple(s2)


# Permutation ---------------------------------------------------------------


def pmx_child(a: Sequence, b: Sequence, i0: int, i1: int) -> tuple:
    """Partially mapped child keeping ``a[i0..i1]`` (inclusive).

    Every other position takes ``b``'s element, following the ``a -> b``
    mapping of the kept segment until it lands on an element not yet placed.
    """
    n = len(a)
    child: list = [None] * n
    mapping: dict = {}
    for i in range(i0, i1 + 1):
        child[i] = a[i]
        mapping.setdefault(a[i], b[i])
    for i in [*range(0, i0), *range(i1 + 1, n)]:
        gene = b[i]
        steps = 0
        while gene in mapping:
            gene = mapping[gene]
            steps += 1
            if steps > n:
                gene = b[i]
                break
        child[i] = gene
    return tuple(child)


class PartiallyMappedCrossover(Crossover):
    requires_permutation = True

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        _check_permutations(a, b)
        if not a:
            return a, b
        i0, i1 = _segment(len(a), rng)
        return pmx_child(a, b, i0, i1), pmx_child(b, a, i0, i1)


def order_child(a: Sequence, b: Sequence, i0: int, i1: int) -> tuple:
    """OX1 child: keep ``a[i0..i1]`` and fill the rest in ``b``'s order after ``i1``."""
    n = len(a)
    child: list = [None] * n
    child[i0 : i1 + 1] = a[i0 : i1 + 1]
    kept = set(a[i0 : i1 + 1])
    fill = [b[(i1 + 1 + k) % n] for k in range(n)]
    fill = [g for g in fill if g not in kept]
    positions = [(i1 + 1 + k) % n for k in range(n - (i1 - i0 + 1))]
    for pos, gene in zip(positions, fill):
        child[pos] = gene
    return tuple(child)


class OrderCrossover(Crossover):
    requires_permutation = True

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        _check_permutations(a, b)
        if not a:
            return a, b
        i0, i1 = _segment(len(a), rng)
        return order_child(a, b, i0, i1), order_child(b, a, i0, i1)


def cycle_children(a: Sequence, b: Sequence) -> Pair:
    """Cycle crossover: alternate cycles are inherited from alternate parents."""
    n = len(a)
    pos_in_a = {g: i for i, g in enumerate(a)}
    cycle_of = [-1] * n
    cycle = 0
    for start in range(n):
        if cycle_of[start] >= 0:
            continue
        i = start
        while cycle_of[i] < 0:
            cycle_of[i] = cycle
            i = pos_in_a[b[i]]
        cycle += 1
    c1 = tuple(a[i] if cycle_of[i] % 2 == 0 else b[i] for i in range(n))
    c2 = tuple(b[i] if cycle_of[i] % 2 == 0 else a[i] for i in range(n))
    return c1, c2


class CycleCrossover(Crossover):
    requires_permutation = True

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        _check_permutations(a, b)
        return cycle_children(a, b)


def _edge_table(a: Sequence, b: Sequence) -> dict:
    table: dict = {g: set() for g in a}
    n = len(a)
    for parent in (a, b):
        for i, g in enumerate(parent):
            table[g].add(parent[i - 1])
            table[g].add(parent[(i + 1) % n])
    for g in table:
        table[g].discard(g)
    return table


def edge_child(a: Sequence, b: Sequence, start, rng: np.random.Generator) -> tuple:
    """Edge recombination child starting from ``start``.

    The next gene is the current gene's remaining neighbour with the fewest
    remaining neighbours (random among ties), or a random unvisited gene when
    the current gene has no neighbours left.
    """
    table = _edge_table(a, b)
    unvisited = list(a)
    child = []
    current = start
    while True:
        child.append(current)
        unvisited.remove(current)
        for edges in table.values():
            edges.discard(current)
        if not unvisited:
            break
        candidates = [g for g in unvisited if g in table[current]]
        if candidates:
            fewest = min(len(table[g]) for g in candidates)
            candidates = [g for g in candidates if len(table[g]) == fewest]
        else:
            candidates = unvisited
        current = candidates[int(rng.integers(0, len(candidates)))]
    return tuple(child)


class EdgeRecombinationCrossover(Crossover):
    requires_permutation = True

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        _check_permutations(a, b)
        if not a:
            return a, b
        return edge_child(a, b, a[0], rng), edge_child(b, a, b[0], rng)


# Real-valued ---------------------------------------------------------------


def arithmetic_crossover_at(a: tuple, b: tuple, alpha: float) -> Pair:
    c1 = tuple(alpha * x + (1.0 - alpha) * y for x, y in zip(a, b))
    c2 = tuple(alpha * y + (1.0 - alpha) * x for x, y in zip(a, b))
    return c1, c2


class ArithmeticCrossover(Crossover):
    """Whole arithmetic recombination with a random mixing weight."""

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        return arithmetic_crossover_at(a, b, float(rng.random()))


class BlendCrossover(Crossover):
    """BLX-alpha: each gene drawn from ``[x - alpha*d, y + alpha*d]`` for ``x <= y``."""

    def __init__(self, alpha: float = 0.5):
        if alpha < 0:
            raise ValueError("alpha must be non-negative")
        self.alpha = alpha

    def __call__(self, a: tuple, b: tuple, rng: np.random.Generator) -> Pair:
        lo = np.minimum(a, b).astype(float)
        hi = np.maximum(a, b).astype(float)
        d = (hi - lo) * self.alpha
        c1 = rng.uniform(lo - d, hi + d)
        c2 = rng.uniform(lo - d, hi + d)
        return tuple(float(v) for v in c1), tuple(float(v) for v in c2)
