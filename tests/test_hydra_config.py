import os
from pathlib import Path

from hydra import compose, initialize_config_dir
import numpy as np
from omegaconf import OmegaConf
import pytest

from memega.config import build_evolve_config, build_meta, build_problem, register_resolvers
from memega.evolution.engine import EvolutionEngine
from memega.exceptions import ConfigurationError
from memega.problems import FunctionProblem, KnapsackProblem, TargetStringProblem, TravellingSalesmanProblem

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _compose(*overrides):
    register_resolvers()
    with initialize_config_dir(config_dir=str(CONFIG_DIR), version_base=None):
        return compose(config_name="config", overrides=list(overrides))


def test_default_composition_builds_target_string_run():
    cfg = _compose()
    problem = build_problem(cfg.problem)
    assert isinstance(problem, TargetStringProblem)
    evolve = build_evolve_config(cfg.evolution)
    assert evolve.target_fitness == 13
    assert evolve.random_seed == 42
    assert evolve.max_workers >= 1
    EvolutionEngine(problem, evolve, verbose=False)


@pytest.mark.parametrize(
    "name, problem_cls, crossover",
    [
        ("knapsack", KnapsackProblem, "k_point"),
        ("ackley", FunctionProblem, "arithmetic"),
        ("rastrigin", FunctionProblem, "blend"),
        ("tsp", TravellingSalesmanProblem, "pmx"),
    ],
)
def test_problem_presets_validate(name, problem_cls, crossover):
    cfg = _compose(f"problem={name}")
    problem = build_problem(cfg.problem)
    assert isinstance(problem, problem_cls)
    evolve = build_evolve_config(cfg.evolution)
    assert evolve.crossover.kind.value == crossover
    EvolutionEngine(problem, evolve, verbose=False)


def test_command_line_overrides_reach_the_config():
    cfg = _compose("problem=knapsack", "seed=7", "evolution.population_size=12")
    evolve = build_evolve_config(cfg.evolution, max_workers=2)
    assert evolve.random_seed == 7
    assert evolve.population_size == 12
    assert evolve.max_workers == 2


def test_meta_section_builds_evaluator():
    cfg = _compose("problem=knapsack", "mode=meta")
    evolve = build_evolve_config(cfg.evolution)
    evaluator, outer = build_meta(cfg.meta, evolve, build_problem(cfg.problem))
    assert len(evaluator.targets) == 1
    assert evaluator.inner_runs == 3
    assert outer.population_size == 20
    assert outer.random_seed == 42


def test_meta_section_over_a_permutation_problem_uses_permutation_operators():
    cfg = _compose("problem=tsp", "mode=meta")
    evolve = build_evolve_config(cfg.evolution)
    evaluator, _ = build_meta(cfg.meta, evolve, build_problem(cfg.problem))
    assert evaluator.space.choices("crossover") == ["pmx", "edge", "order", "cycle"]
    assert evaluator.space.choices("mutation") == ["swap", "scramble", "inversion"]
    vector = evaluator.space.random(np.random.default_rng(0))
    EvolutionEngine(evaluator.targets[0].problem, evaluator.inner_config(vector), verbose=False)


def test_build_problem_rejects_non_problems():
    node = OmegaConf.create({"_target_": "builtins.dict"})
    with pytest.raises(ConfigurationError):
        build_problem(node)


def test_invalid_values_surface_as_configuration_errors():
    cfg = _compose("evolution.mutation.rate=2.0")
    with pytest.raises(ConfigurationError):
        build_evolve_config(cfg.evolution)


def test_resolvers_can_be_registered_twice():
    register_resolvers()
    register_resolvers()
    node = OmegaConf.create({"workers": "${cpu_count:}"})
    assert node.workers == (os.cpu_count() or 1)
