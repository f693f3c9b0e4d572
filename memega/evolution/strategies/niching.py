from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from loguru import logger
import numpy as np
from pydantic import BaseModel, Field

from memega.evolution.population import Population, rank_key
from memega.evolution.strategies.distance import DistanceMatrix

if TYPE_CHECKING:
    from memega.problems.base import Problem

#: Binary search on the species radius stops once the interval is this narrow.
RADIUS_EPSILON = 1e-6
#: Sharing exponent used with a fixed radius, between the usual 5 and 10.
DEFAULT_ALPHA = 6.0


class NichingReport(BaseModel):
    species_count: int = Field(default=0, ge=0)
    radius: float | None = None
    mean_distance: float = Field(
        default=float("nan"), description="NaN when no distance matrix was built"
    )


class Niching(ABC):
    """Assign ``selection_fitness`` and ``species_id`` across a whole pool."""

    @abstractmethod
    def __call__(
        self, pool: Population, problem: "Problem"
    ) -> tuple[Population, NichingReport]:
        pass


class NoNiching(Niching):
    def __call__(self, pool, problem):
        individuals = [ind.niched(ind.fitness, None) for ind in pool]
        return Population(individuals), NichingReport()


def speciate(dists: np.ndarray, order: list[int], radius: float) -> tuple[list[int], int]:
    """Greedy leader clustering.

    Walking ``order`` (best first), the first unassigned individual founds a
    species and claims every unassigned individual within ``radius`` of it.
    Returns 1-based species ids per index and the number of species.
    """
    ids = [0] * len(order)
    unassigned = np.asarray(order, dtype=int)
    species = 0
    while unassigned.size:
        leader = int(unassigned[0])
        species += 1
        claimed = dists[leader, unassigned] <= radius
        claimed[0] = True
        for idx in unassigned[claimed]:
            ids[int(idx)] = species
        unassigned = unassigned[~claimed]
    return ids, species


def shared_fitness(fitness: np.ndarray, dists: np.ndarray, radius: float, alpha: float) -> np.ndarray:
    """``F'(i) = F(i) / sum_j sh(d_ij)`` with ``sh(d) = 1 - (d / radius) ** alpha`` for ``d < radius``."""
    if radius <= 0:
        return fitness.copy()
    ratio = np.where(dists < radius, dists / radius, 1.0)
    niche = np.where(dists < radius, 1.0 - ratio**alpha, 0.0).sum(axis=1)
    with np.errstate(invalid="ignore"):
        shared = fitness / np.maximum(niche, 1.0)
    # Failed individuals stay at -inf.
    return np.where(np.isfinite(fitness), shared, fitness)


class SharedFitnessNiching(Niching):
    """Fitness sharing over genome-distance species.

    With ``species_target`` the species radius is binary-searched until the
    greedy clustering yields that many species, and the sharing exponent
    defaults to ``radius / species_count``. With a fixed ``radius`` the
    exponent defaults to ``DEFAULT_ALPHA``. Negative raw fitness is shifted to
    zero first so that sharing always lowers an individual's value.
    """

    def __init__(
        self,
        species_target: int | None = None,
        radius: float | None = None,
        alpha: float | None = None,
    ):
        if (species_target is None) == (radius is None):
            raise ValueError("Exactly one of species_target or radius must be given")
        if species_target is not None and species_target <= 0:
            raise ValueError("species_target must be positive")
        if radius is not None and radius < 0:
            raise ValueError("radius must be non-negative")
        if alpha is not None and alpha <= 0:
            raise ValueError("alpha must be positive")
        self.species_target = species_target
        self.radius = radius
        self.alpha = alpha

    def __call__(self, pool, problem):
        if not len(pool):
            return pool, NichingReport()
        matrix = DistanceMatrix.compute(pool.genomes(), problem)
        order = sorted(range(len(pool)), key=lambda i: rank_key(pool[i].fitness), reverse=True)

        if self.species_target is not None:
            radius, ids, count = self._search_radius(matrix, order)
            alpha = self.alpha if self.alpha is not None else (radius / count if radius > 0 else 1.0)
        else:
            radius = self.radius
            ids, count = speciate(matrix.values, order, radius)
            alpha = self.alpha if self.alpha is not None else DEFAULT_ALPHA

        raw = np.array([ind.fitness for ind in pool], dtype=float)
        finite = raw[np.isfinite(raw)]
        if finite.size and finite.min() < 0:
            raw = np.where(np.isfinite(raw), raw - finite.min(), raw)
        adjusted = shared_fitness(raw, matrix.values, radius, alpha)

        individuals = [
            ind.niched(float(adjusted[i]), ids[i]) for i, ind in enumerate(pool)
        ]
        logger.debug(
            "[SharedFitnessNiching] species={}, radius={:.4f}, alpha={:.4f}",
            count,
            radius,
            alpha,
        )
        return Population(individuals), NichingReport(
            species_count=count, radius=radius, mean_distance=matrix.mean()
        )

    def _search_radius(
        self, matrix: DistanceMatrix, order: list[int]
    ) -> tuple[float, list[int], int]:
        lo, hi = 0.0, matrix.max()
        radius = hi
        ids, count = speciate(matrix.values, order, radius)
        while hi - lo > RADIUS_EPSILON and count != self.species_target:
            radius = (lo + hi) / 2.0
            ids, count = speciate(matrix.values, order, radius)
            if count < self.species_target:
                hi = radius
            elif count > self.species_target:
                lo = radius
        return radius, ids, count
