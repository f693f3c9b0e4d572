from __future__ import annotations

import math
from typing import Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field

WORST_FITNESS = float("-inf")


def rank_key(fitness: float | None) -> float:
    return WORST_FITNESS if fitness is None or math.isnan(fitness) else fitness


class Individual(BaseModel):
    """Immutable genome with its evaluation state.

    ``fitness`` is the raw evaluator value and is set exactly once.
    ``selection_fitness`` is the niche-adjusted value parents are drawn by and
    is recomputed every generation together with ``species_id``.
    """

    genome: tuple
    fitness: float | None = Field(default=None, description="Raw evaluator fitness")
    selection_fitness: float | None = Field(
        default=None, description="Niche-adjusted fitness used by selection"
    )
    species_id: int | None = Field(default=None, description="Species label, 1-based")

    model_config = ConfigDict(frozen=True)

    @property
    def is_evaluated(self) -> bool:
        return self.fitness is not None

    def evaluated(self, fitness: float) -> "Individual":
        if self.fitness is not None:
            raise ValueError("Individual fitness is already set")
        return self.model_copy(
            update={"fitness": float(fitness), "selection_fitness": float(fitness)}
        )

    def niched(self, selection_fitness: float, species_id: int | None) -> "Individual":
        return self.model_copy(
            update={"selection_fitness": float(selection_fitness), "species_id": species_id}
        )


class Population:
    """Ordered collection of individuals.

    Ordering carries no meaning except after ``ranked()``; it is preserved by
    evaluation so that seeded runs replay identically.
    """

    def __init__(self, individuals: Iterable[Individual] = ()):
        self.individuals: list[Individual] = list(individuals)

    @classmethod
    def from_genomes(cls, genomes: Iterable[tuple]) -> "Population":
        return cls(Individual(genome=tuple(g)) for g in genomes)

    def __len__(self) -> int:
        return len(self.individuals)

    def __iter__(self) -> Iterator[Individual]:
        return iter(self.individuals)

    def __getitem__(self, idx: int) -> Individual:
        return self.individuals[idx]

    def __add__(self, other: "Population") -> "Population":
        return Population([*self.individuals, *other.individuals])

    def __repr__(self) -> str:
        return f"Population(size={len(self)}, best={self.best_fitness()})"

    def genomes(self) -> list[tuple]:
        return [ind.genome for ind in self.individuals]

    def unevaluated(self) -> list[int]:
        """Indices of individuals still lacking fitness."""
        return [i for i, ind in enumerate(self.individuals) if ind.fitness is None]

    def ranked(self) -> list[Individual]:
        """Individuals by raw fitness, best first; ties keep population order."""
        return sorted(self.individuals, key=lambda ind: rank_key(ind.fitness), reverse=True)

    def best(self) -> Individual | None:
        if not self.individuals:
            return None
        # max() returns the first maximal element, matching ranked()[0].
        return max(self.individuals, key=lambda ind: rank_key(ind.fitness))

    def best_fitness(self) -> float:
        best = self.best()
        return WORST_FITNESS if best is None else rank_key(best.fitness)

    def mean_fitness(self) -> float:
        """Mean over finite fitness values; failed individuals are excluded."""
        values = [
            ind.fitness
            for ind in self.individuals
            if ind.fitness is not None and math.isfinite(ind.fitness)
        ]
        return sum(values) / len(values) if values else WORST_FITNESS

    def duplicate_count(self) -> int:
        return len(self.individuals) - len({ind.genome for ind in self.individuals})

    def species_count(self) -> int:
        return len({ind.species_id for ind in self.individuals if ind.species_id is not None})

    def by_species(self) -> dict[int | None, list[Individual]]:
        """Group individuals by species id, preserving population order."""
        buckets: dict[int | None, list[Individual]] = {}
        for ind in self.individuals:
            buckets.setdefault(ind.species_id, []).append(ind)
        return buckets
