from memega.evolution.engine.config import EvolveConfig
from memega.evolution.engine.core import EvolutionEngine, EvolveResult, StatsSink, StopReason
from memega.evolution.engine.metrics import EngineMetrics, GenerationStats

__all__ = [
    "EngineMetrics",
    "EvolutionEngine",
    "EvolveConfig",
    "EvolveResult",
    "GenerationStats",
    "StatsSink",
    "StopReason",
]
