from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Sequence

import numpy as np
from pydantic import BaseModel, Field, model_validator

from memega.evolution.engine.config import (
    CrossoverKind,
    EvolveConfig,
    MutationKind,
    NichingKind,
    SelectionKind,
    SurvivalKind,
)
from memega.exceptions import ConfigurationError

HyperParams = tuple[float, ...]

GENERAL_CROSSOVERS = (CrossoverKind.K_POINT, CrossoverKind.UNIFORM)
PERMUTATION_CROSSOVER_KINDS = (
    CrossoverKind.PMX,
    CrossoverKind.EDGE,
    CrossoverKind.ORDER,
    CrossoverKind.CYCLE,
)
GENERAL_MUTATIONS = (
    MutationKind.SINGLE_REPLACEMENT,
    MutationKind.RANDOM_RESET,
    MutationKind.SWAP,
    MutationKind.SCRAMBLE,
    MutationKind.INVERSION,
)
PERMUTATION_MUTATIONS = (MutationKind.SWAP, MutationKind.SCRAMBLE, MutationKind.INVERSION)


class HyperParam(BaseModel):
    """One locus of the hyper-parameter vector.

    ``choice`` loci hold an index into ``choices`` and, like ``int`` loci, are
    rounded on clamp.
    """

    name: str
    low: float
    high: float
    kind: Literal["real", "int", "choice"] = "real"
    choices: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_range(self) -> HyperParam:
        if self.kind == "choice":
            if not self.choices:
                raise ValueError(f"Choice parameter '{self.name}' needs choices")
            self.low, self.high = 0.0, float(len(self.choices) - 1)
        if self.low > self.high:
            raise ValueError(f"Parameter '{self.name}': low {self.low} > high {self.high}")
        return self

    def clamp(self, value: float) -> float:
        value = min(self.high, max(self.low, float(value)))
        return float(round(value)) if self.kind != "real" else value

    def sample(self, rng: np.random.Generator) -> float:
        if self.kind == "real":
            return float(rng.uniform(self.low, self.high))
        return float(rng.integers(int(self.low), int(self.high) + 1))

    def decode(self, value: float) -> Any:
        value = self.clamp(value)
        if self.kind == "choice":
            return self.choices[int(value)]
        if self.kind == "int":
            return int(value)
        return value


def _names(kinds: Sequence[Enum | str]) -> list[str]:
    return [k.value if isinstance(k, Enum) else str(k) for k in kinds]


class HyperParamSpace:
    """Fixed-shape numeric genome describing an inner EvolveConfig.

    Every vector produced by variation is passed through :py:meth:`clamp`,
    which keeps each locus inside its declared range.
    """

    def __init__(self, params: Sequence[HyperParam]):
        if not params:
            raise ConfigurationError("HyperParamSpace needs at least one parameter")
        names = [p.name for p in params]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate hyper-parameter names: {names}")
        self.params = list(params)
        self._index = {p.name: i for i, p in enumerate(self.params)}

    @classmethod
    def default(
        cls,
        *,
        population_size: tuple[int, int] = (10, 100),
        crossovers: Sequence[CrossoverKind | str] | None = None,
        mutations: Sequence[MutationKind | str] | None = None,
        max_species: int = 10,
        permutation: bool = False,
    ) -> "HyperParamSpace":
        """Standard loci; operator choices default to ones that fit the genome kind."""
        if crossovers is None:
            crossovers = PERMUTATION_CROSSOVER_KINDS if permutation else GENERAL_CROSSOVERS
        if mutations is None:
            mutations = PERMUTATION_MUTATIONS if permutation else GENERAL_MUTATIONS
        return cls(
            [
                HyperParam(name="population_size", low=population_size[0], high=population_size[1], kind="int"),
                HyperParam(name="mutation_rate", low=0.0, high=1.0),
                HyperParam(name="crossover_rate", low=0.0, high=1.0),
                HyperParam(name="selection", low=0, high=0, kind="choice", choices=_names(SelectionKind)),
                HyperParam(name="survival_proportion", low=0.05, high=1.0),
                HyperParam(name="survival_per_species", low=0, high=0, kind="choice", choices=["no", "yes"]),
                HyperParam(name="species_target", low=0, high=max_species, kind="int"),
                HyperParam(name="mutation", low=0, high=0, kind="choice", choices=_names(mutations)),
                HyperParam(name="crossover", low=0, high=0, kind="choice", choices=_names(crossovers)),
            ]
        )

    def __len__(self) -> int:
        return len(self.params)

    def index(self, name: str) -> int:
        return self._index[name]

    def choices(self, name: str) -> list[str] | None:
        """Choices of a ``choice`` locus, or None when the space has no such locus."""
        if name not in self._index:
            return None
        return list(self.params[self._index[name]].choices) or None

    def random(self, rng: np.random.Generator) -> HyperParams:
        return tuple(p.sample(rng) for p in self.params)

    def clamp(self, vector: Sequence[float]) -> HyperParams:
        if len(vector) != len(self.params):
            raise ValueError(f"Expected {len(self.params)} hyper-parameters, got {len(vector)}")
        return tuple(p.clamp(v) for p, v in zip(self.params, vector))

    def describe(self, vector: Sequence[float]) -> dict[str, Any]:
        return {p.name: p.decode(v) for p, v in zip(self.params, self.clamp(vector))}

    def decode(self, vector: Sequence[float], base: EvolveConfig) -> EvolveConfig:
        """Apply the vector on top of ``base``; loci the space lacks keep base values."""
        values = self.describe(vector)
        changes: dict[str, Any] = {}
        if "population_size" in values:
            changes["population_size"] = values["population_size"]
        if "selection" in values:
            changes["selection"] = values["selection"]

        mutation: dict[str, Any] = {}
        if "mutation_rate" in values:
            mutation["rate"] = values["mutation_rate"]
        if "mutation" in values:
            mutation["kind"] = values["mutation"]
        if mutation:
            changes["mutation"] = mutation

        crossover: dict[str, Any] = {}
        if "crossover_rate" in values:
            crossover["rate"] = values["crossover_rate"]
        if "crossover" in values:
            crossover["kind"] = values["crossover"]
        if crossover:
            changes["crossover"] = crossover

        niching_on = base.niching.kind != NichingKind.NONE
        if "species_target" in values:
            target = values["species_target"]
            niching_on = target > 0
            changes["niching"] = (
                {"kind": NichingKind.SHARED_FITNESS.value, "species_target": target, "radius": None}
                if niching_on
                else {"kind": NichingKind.NONE.value, "species_target": None, "radius": None}
            )

        survival: dict[str, Any] = {}
        if "survival_proportion" in values:
            survival["proportion"] = values["survival_proportion"]
        per_species = values.get("survival_per_species") == "yes"
        if "survival_per_species" in values or not niching_on:
            survival["kind"] = (
                SurvivalKind.TOP_PROPORTION_PER_SPECIES.value
                if per_species and niching_on
                else SurvivalKind.TOP_PROPORTION.value
            )
        if survival:
            changes["survival"] = survival

        return base.updated(**changes)
