"""Build operator instances from an EvolveConfig."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from memega.evolution.engine.config import (
    PERMUTATION_CROSSOVERS,
    CrossoverConfig,
    CrossoverKind,
    MutationConfig,
    MutationKind,
    NichingConfig,
    NichingKind,
    SelectionKind,
    SurvivalConfig,
    SurvivalKind,
)
from memega.evolution.strategies.crossover import (
    ArithmeticCrossover,
    BlendCrossover,
    Crossover,
    CycleCrossover,
    EdgeRecombinationCrossover,
    KPointCrossover,
    OrderCrossover,
    PartiallyMappedCrossover,
    UniformCrossover,
)
from memega.evolution.strategies.mutation import (
    CreepMutation,
    InversionMutation,
    Mutator,
    RandomResetMutation,
    ScrambleMutation,
    SingleReplacementMutation,
    SwapMutation,
)
from memega.evolution.strategies.niching import Niching, NoNiching, SharedFitnessNiching
from memega.evolution.strategies.selectors import RouletteSelector, Selector, SusSelector
from memega.evolution.strategies.survival import (
    SpeciesTopProportionSurvival,
    Survivor,
    TopProportionSurvival,
)
from memega.exceptions import ConfigurationError

if TYPE_CHECKING:
    from memega.problems.base import Problem


_SELECTORS: dict[SelectionKind, type[Selector]] = {
    SelectionKind.SUS: SusSelector,
    SelectionKind.RWS: RouletteSelector,
}

_CROSSOVERS: dict[CrossoverKind, Callable[[CrossoverConfig], Crossover]] = {
    CrossoverKind.K_POINT: lambda cfg: KPointCrossover(cfg.k),
    CrossoverKind.UNIFORM: lambda cfg: UniformCrossover(),
    CrossoverKind.PMX: lambda cfg: PartiallyMappedCrossover(),
    CrossoverKind.EDGE: lambda cfg: EdgeRecombinationCrossover(),
    CrossoverKind.ORDER: lambda cfg: OrderCrossover(),
    CrossoverKind.CYCLE: lambda cfg: CycleCrossover(),
    CrossoverKind.ARITHMETIC: lambda cfg: ArithmeticCrossover(),
    CrossoverKind.BLEND: lambda cfg: BlendCrossover(cfg.alpha),
}

_MUTATORS: dict[MutationKind, Callable[[MutationConfig], Mutator]] = {
    MutationKind.SINGLE_REPLACEMENT: lambda cfg: SingleReplacementMutation(
        cfg.distribution, cfg.sigma
    ),
    MutationKind.RANDOM_RESET: lambda cfg: RandomResetMutation(),
    MutationKind.SWAP: lambda cfg: SwapMutation(),
    MutationKind.SCRAMBLE: lambda cfg: ScrambleMutation(),
    MutationKind.INVERSION: lambda cfg: InversionMutation(),
    MutationKind.CREEP: lambda cfg: CreepMutation(
        cfg.creep_small, cfg.creep_large, cfg.creep_large_probability
    ),
}


def build_selector(kind: SelectionKind) -> Selector:
    return _SELECTORS[SelectionKind(kind)]()


def build_crossover(cfg: CrossoverConfig) -> Crossover:
    return _CROSSOVERS[cfg.kind](cfg)


def build_mutator(cfg: MutationConfig) -> Mutator:
    return _MUTATORS[cfg.kind](cfg)


def check_operators(problem: Problem, crossover: CrossoverKind, mutation: MutationConfig) -> None:
    """Raise ``ConfigurationError`` if the operators cannot vary ``problem``'s genomes."""
    crossover = CrossoverKind(crossover)
    if crossover in PERMUTATION_CROSSOVERS and not problem.is_permutation:
        raise ConfigurationError(
            f"Crossover '{crossover.value}' needs a permutation problem, "
            f"{type(problem).__name__} is not one"
        )
    if problem.is_permutation:
        if crossover not in PERMUTATION_CROSSOVERS:
            raise ConfigurationError(
                f"Crossover '{crossover.value}' does not preserve permutations"
            )
        if not build_mutator(mutation).preserves_permutation:
            raise ConfigurationError(
                f"Mutation '{mutation.kind.value}' does not preserve permutations"
            )


def build_niching(cfg: NichingConfig) -> Niching:
    if cfg.kind == NichingKind.NONE:
        return NoNiching()
    return SharedFitnessNiching(
        species_target=cfg.species_target, radius=cfg.radius, alpha=cfg.alpha
    )


def build_survivor(cfg: SurvivalConfig) -> Survivor:
    if cfg.kind == SurvivalKind.TOP_PROPORTION:
        return TopProportionSurvival(cfg.proportion)
    return SpeciesTopProportionSurvival(cfg.proportion)
