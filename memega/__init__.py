"""Generic evolutionary-computation engine with a self-tuning meta-GA."""

from memega.evolution.engine import EvolutionEngine, EvolveConfig, EvolveResult, GenerationStats
from memega.evolution.meta import HyperEvaluator, HyperParamSpace, MetaConfig, MetaEvolution
from memega.exceptions import (
    ConfigurationError,
    EvaluationFailure,
    EvolutionError,
    InvalidFitnessError,
    MemegaError,
)
from memega.problems import Evaluator, Problem

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "EvaluationFailure",
    "Evaluator",
    "EvolutionEngine",
    "EvolutionError",
    "EvolveConfig",
    "EvolveResult",
    "GenerationStats",
    "HyperEvaluator",
    "HyperParamSpace",
    "InvalidFitnessError",
    "MemegaError",
    "MetaConfig",
    "MetaEvolution",
    "Problem",
]
