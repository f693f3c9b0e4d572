from memega.evolution.evaluation.cache import CacheStats, FitnessCache
from memega.evolution.evaluation.parallel import EvaluationReport, ParallelEvaluator
from memega.evolution.evaluation.worker_pool import WorkerPool

__all__ = [
    "CacheStats",
    "EvaluationReport",
    "FitnessCache",
    "ParallelEvaluator",
    "WorkerPool",
]
