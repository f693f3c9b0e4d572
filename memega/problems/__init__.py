from memega.problems.base import (
    Evaluator,
    Genome,
    InverseTransform,
    Problem,
    WeightedSumEvaluator,
)
from memega.problems.functions import FunctionProblem
from memega.problems.knapsack import KnapsackProblem
from memega.problems.target_string import TargetStringProblem
from memega.problems.tsp import TravellingSalesmanProblem

__all__ = [
    "Evaluator",
    "FunctionProblem",
    "Genome",
    "InverseTransform",
    "KnapsackProblem",
    "Problem",
    "TargetStringProblem",
    "TravellingSalesmanProblem",
    "WeightedSumEvaluator",
]
