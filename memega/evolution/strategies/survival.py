from __future__ import annotations

from abc import ABC, abstractmethod
import math
from typing import Sequence

from memega.evolution.population import Individual, Population


def _top(individuals: Sequence[Individual], proportion: float) -> list[Individual]:
    """Top ``ceil(proportion * n)`` by raw fitness; ties keep input order."""
    k = math.ceil(proportion * len(individuals))
    return Population(individuals).ranked()[:k]


class Survivor(ABC):
    """Reduce a parent+offspring pool to the individuals that survive."""

    def __init__(self, proportion: float):
        if not 0.0 < proportion <= 1.0:
            raise ValueError(f"Survival proportion must be in (0, 1], got {proportion}")
        self.proportion = proportion

    @abstractmethod
    def __call__(self, pool: Sequence[Individual]) -> list[Individual]:
        pass


class TopProportionSurvival(Survivor):
    def __call__(self, pool: Sequence[Individual]) -> list[Individual]:
        return _top(pool, self.proportion)


class SpeciesTopProportionSurvival(Survivor):
    """Top proportion taken within every species, so no species dies out entirely.

    Buckets are concatenated in order of species id; individuals without a
    species form one bucket of their own.
    """

    def __call__(self, pool: Sequence[Individual]) -> list[Individual]:
        buckets = Population(pool).by_species()
        survivors: list[Individual] = []
        for sid in sorted(buckets, key=lambda s: -1 if s is None else s):
            survivors.extend(_top(buckets[sid], self.proportion))
        return survivors
