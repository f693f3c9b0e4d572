from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from memega.exceptions import ConfigurationError


class SelectionKind(str, Enum):
    SUS = "sus"
    RWS = "rws"


class CrossoverKind(str, Enum):
    K_POINT = "k_point"
    UNIFORM = "uniform"
    PMX = "pmx"
    EDGE = "edge"
    ORDER = "order"
    CYCLE = "cycle"
    ARITHMETIC = "arithmetic"
    BLEND = "blend"


PERMUTATION_CROSSOVERS = {
    CrossoverKind.PMX,
    CrossoverKind.EDGE,
    CrossoverKind.ORDER,
    CrossoverKind.CYCLE,
}


class MutationKind(str, Enum):
    SINGLE_REPLACEMENT = "single_replacement"
    RANDOM_RESET = "random_reset"
    SWAP = "swap"
    SCRAMBLE = "scramble"
    INVERSION = "inversion"
    CREEP = "creep"


class NichingKind(str, Enum):
    NONE = "none"
    SHARED_FITNESS = "shared_fitness"


class SurvivalKind(str, Enum):
    TOP_PROPORTION = "top_proportion"
    TOP_PROPORTION_PER_SPECIES = "top_proportion_per_species"


class StagnationKind(str, Enum):
    NONE = "none"
    ONE_SHOT = "one_shot"
    CONTINUOUS = "continuous"


class CrossoverConfig(BaseModel):
    kind: CrossoverKind = CrossoverKind.UNIFORM
    rate: float = Field(default=1.0, ge=0.0, le=1.0, description="Probability a parent pair recombines")
    k: int = Field(default=2, gt=0, description="Cut points for k_point")
    alpha: float = Field(default=0.5, ge=0.0, description="Spread for blend")

    model_config = ConfigDict(extra="forbid")


class MutationConfig(BaseModel):
    kind: MutationKind = MutationKind.SINGLE_REPLACEMENT
    rate: float = Field(default=0.01, ge=0.0, le=1.0)
    distribution: Literal["uniform", "normal"] = "uniform"
    sigma: float = Field(default=0.1, gt=0.0, description="Relative sigma for normal replacement")
    creep_small: float = Field(default=1.0, ge=0.0)
    creep_large: float = Field(default=10.0, ge=0.0)
    creep_large_probability: float = Field(default=0.1, ge=0.0, le=1.0)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_creep_bounds(self) -> MutationConfig:
        if self.creep_large < self.creep_small:
            raise ValueError(
                f"creep_large ({self.creep_large}) must be >= creep_small ({self.creep_small})"
            )
        return self


class NichingConfig(BaseModel):
    kind: NichingKind = NichingKind.NONE
    species_target: int | None = Field(default=None, gt=0, description="Desired number of species")
    radius: float | None = Field(default=None, ge=0.0, description="Fixed sharing radius")
    alpha: float | None = Field(default=None, gt=0.0, description="Sharing exponent override")

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_target(self) -> NichingConfig:
        if self.kind == NichingKind.SHARED_FITNESS and (
            (self.species_target is None) == (self.radius is None)
        ):
            raise ValueError("shared_fitness needs exactly one of species_target or radius")
        return self


class SurvivalConfig(BaseModel):
    kind: SurvivalKind = SurvivalKind.TOP_PROPORTION
    proportion: float = Field(default=0.5, gt=0.0, le=1.0)

    model_config = ConfigDict(extra="forbid")


class StagnationConfig(BaseModel):
    kind: StagnationKind = StagnationKind.NONE
    generations: int = Field(default=100, gt=0, description="Generations without improvement")
    replace_proportion: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Share of offspring replaced by random genomes"
    )

    model_config = ConfigDict(extra="forbid")


class EvolveConfig(BaseModel):
    """Configuration options controlling EvolutionEngine behaviour."""

    population_size: int = Field(default=100, gt=0)
    generations: int | None = Field(
        default=100,
        gt=0,
        description="Generations to run (None = until target_fitness or cancellation)",
    )
    target_fitness: float | None = Field(default=None, description="Stop once best fitness reaches this")
    selection: SelectionKind = SelectionKind.SUS
    crossover: CrossoverConfig = Field(default_factory=CrossoverConfig)
    mutation: MutationConfig = Field(default_factory=MutationConfig)
    niching: NichingConfig = Field(default_factory=NichingConfig)
    survival: SurvivalConfig = Field(default_factory=SurvivalConfig)
    stagnation: StagnationConfig = Field(default_factory=StagnationConfig)
    allow_duplicates: bool = Field(default=True, description="Allow offspring identical to a pool member")
    random_seed: int | None = Field(default=None, ge=0)
    max_workers: int | None = Field(default=None, gt=0, description="None = shared pool default")
    cache_size: int = Field(default=100_000, ge=0, description="Fitness cache entries (0 disables)")
    cache_shards: int = Field(default=16, gt=0)
    log_interval: int = Field(default=10, ge=0, description="Log metrics every N generations (0 = never)")

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _validate_termination(self) -> EvolveConfig:
        if self.generations is None and self.target_fitness is None:
            raise ValueError("generations=None requires a target_fitness")
        if (
            self.survival.kind == SurvivalKind.TOP_PROPORTION_PER_SPECIES
            and self.niching.kind == NichingKind.NONE
        ):
            raise ValueError("top_proportion_per_species survival requires niching")
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EvolveConfig:
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid evolution config: {exc}") from exc

    def updated(self, **changes: Any) -> EvolveConfig:
        """Validated copy with ``changes`` applied (nested configs as dicts or models)."""
        data = self.model_dump()
        for key, value in changes.items():
            if isinstance(value, BaseModel):
                value = value.model_dump()
            if isinstance(value, Mapping) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        return EvolveConfig.from_dict(data)
