"""Turn composed Hydra configs into memega objects."""

from typing import Any

from hydra.utils import instantiate
from omegaconf import DictConfig, OmegaConf

from memega.evolution.engine.config import EvolveConfig
from memega.evolution.meta.evaluator import HyperEvaluator
from memega.evolution.meta.runner import MetaConfig
from memega.evolution.meta.space import HyperParamSpace
from memega.exceptions import ConfigurationError
from memega.problems.base import Problem


def to_plain(node: DictConfig | dict[str, Any] | None) -> dict[str, Any]:
    """Resolved plain-dict copy of a config node."""
    if node is None:
        return {}
    if isinstance(node, DictConfig):
        return OmegaConf.to_container(node, resolve=True)  # type: ignore[return-value]
    return dict(node)


def build_evolve_config(node: DictConfig | dict[str, Any], **overrides: Any) -> EvolveConfig:
    """Validate an ``evolution`` node; ``overrides`` win over the node's values."""
    data = to_plain(node)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return EvolveConfig.from_dict(data)


def build_problem(node: DictConfig) -> Problem:
    problem = instantiate(node)
    if not isinstance(problem, Problem):
        raise ConfigurationError(
            f"problem config must instantiate a Problem, got {type(problem).__name__}"
        )
    return problem


def build_meta(
    node: DictConfig, inner_config: EvolveConfig, problem: Problem
) -> tuple[HyperEvaluator, MetaConfig]:
    """Build the hyper evaluator and outer-loop settings from a ``meta`` node."""
    data = to_plain(node)
    space_kwargs = {"permutation": problem.is_permutation, **data.get("space", {})}
    space = HyperParamSpace.default(**space_kwargs)
    evaluator = HyperEvaluator(space, inner_config, **data.get("inner", {}))
    evaluator.add(problem, data.get("max_fitness"))
    try:
        outer = MetaConfig.model_validate(data.get("outer", {}))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid meta config: {exc}") from exc
    return evaluator, outer
