from memega.evolution.meta.evaluator import HyperEvaluator, HyperParamProblem
from memega.evolution.meta.runner import HyperCandidate, MetaConfig, MetaEvolution, MetaResult
from memega.evolution.meta.space import HyperParam, HyperParams, HyperParamSpace

__all__ = [
    "HyperCandidate",
    "HyperEvaluator",
    "HyperParam",
    "HyperParamProblem",
    "HyperParamSpace",
    "HyperParams",
    "MetaConfig",
    "MetaEvolution",
    "MetaResult",
]
