import numpy as np
import pytest

from memega.evolution.engine import EvolveConfig
from memega.evolution.meta import (
    HyperEvaluator,
    HyperParam,
    HyperParamProblem,
    HyperParamSpace,
    MetaConfig,
    MetaEvolution,
)
from memega.exceptions import ConfigurationError
from memega.problems import KnapsackProblem, TravellingSalesmanProblem


def _base_config():
    return EvolveConfig.from_dict({"crossover": {"kind": "k_point"}, "log_interval": 0})


def _evaluator(**kwargs):
    space = HyperParamSpace.default(population_size=(10, 30))
    params = {"inner_runs": 2, "inner_generations": 5, "seed": 3}
    params.update(kwargs)
    evaluator = HyperEvaluator(space, _base_config(), **params)
    return evaluator.add(KnapsackProblem(num_items=20, seed=1))


def _vector(space, **values):
    vector = list(space.clamp([p.low for p in space.params]))
    for name, value in values.items():
        param = space.params[space.index(name)]
        vector[space.index(name)] = (
            float(param.choices.index(value)) if param.kind == "choice" else float(value)
        )
    return tuple(vector)


def test_param_clamp_rounds_discrete_kinds():
    assert HyperParam(name="x", low=0, high=1).clamp(1.7) == 1.0
    assert HyperParam(name="n", low=1, high=9, kind="int").clamp(3.6) == 4.0
    choice = HyperParam(name="c", low=0, high=0, kind="choice", choices=["a", "b", "c"])
    assert (choice.low, choice.high) == (0.0, 2.0)
    assert choice.clamp(-3) == 0.0
    assert choice.decode(1.6) == "c"


def test_param_rejects_inverted_range():
    with pytest.raises(ValueError):
        HyperParam(name="x", low=2, high=1)


def test_space_rejects_duplicate_names():
    with pytest.raises(ConfigurationError):
        HyperParamSpace([HyperParam(name="x", low=0, high=1)] * 2)


def test_random_vectors_stay_in_range(rng):
    space = HyperParamSpace.default()
    for _ in range(100):
        vector = space.random(rng)
        assert space.clamp(vector) == vector


def test_clamp_pulls_wild_vectors_back(rng):
    space = HyperParamSpace.default()
    for _ in range(100):
        wild = tuple(rng.normal(0.0, 1000.0, size=len(space)))
        clamped = space.clamp(wild)
        for p, v in zip(space.params, clamped):
            assert p.low <= v <= p.high


def test_decode_without_species_disables_niching():
    space = HyperParamSpace.default()
    vector = _vector(
        space, species_target=0, survival_per_species="yes", mutation="swap", crossover="uniform"
    )
    cfg = space.decode(vector, _base_config())
    assert cfg.niching.kind.value == "none"
    assert cfg.survival.kind.value == "top_proportion"
    assert cfg.mutation.kind.value == "swap"
    assert cfg.crossover.kind.value == "uniform"
    assert cfg.population_size == 10


def test_decode_with_species_enables_per_species_survival():
    space = HyperParamSpace.default()
    vector = _vector(space, species_target=3, survival_per_species="yes", population_size=40)
    cfg = space.decode(vector, _base_config())
    assert cfg.niching.kind.value == "shared_fitness"
    assert cfg.niching.species_target == 3
    assert cfg.survival.kind.value == "top_proportion_per_species"
    assert cfg.population_size == 40


def test_describe_names_every_locus():
    space = HyperParamSpace.default()
    description = space.describe(_vector(space, selection="rws"))
    assert set(description) == {p.name for p in space.params}
    assert description["selection"] == "rws"


def test_evaluator_needs_a_problem():
    space = HyperParamSpace.default()
    evaluator = HyperEvaluator(space, _base_config())
    with pytest.raises(ConfigurationError):
        evaluator.evaluate(space.random(np.random.default_rng(0)))


def test_inner_runs_are_reproducible():
    evaluator = _evaluator()
    vector = _vector(evaluator.space, mutation_rate=0.05, crossover_rate=0.8, survival_proportion=0.5)
    scores = evaluator.run_scores(vector)
    assert len(scores) == 2
    assert all(0.0 <= s <= 1.0 for s in scores)
    assert evaluator.run_scores(vector) == scores
    expected = np.mean(scores) - np.var(scores)
    assert evaluator.evaluate(vector) == pytest.approx(expected)


def test_variance_penalty_lowers_score():
    vector = _vector(
        HyperParamSpace.default(population_size=(10, 30)),
        mutation_rate=0.3,
        crossover_rate=0.5,
        survival_proportion=0.3,
    )
    plain = _evaluator(variance_penalty=0.0).evaluate(vector)
    penalised = _evaluator(variance_penalty=5.0).evaluate(vector)
    assert penalised <= plain


def test_hyper_problem_repairs_into_space(rng):
    problem = HyperParamProblem(_evaluator())
    wild = tuple(rng.normal(0.0, 100.0, size=len(problem.space)))
    assert problem.repair(wild) == problem.space.clamp(wild)
    a, b = problem.random_genome(rng), problem.random_genome(rng)
    assert problem.distance(a, a) == 0.0
    assert problem.distance(a, b) == problem.distance(b, a)


def test_meta_evolution_keeps_its_best():
    evaluator = _evaluator()
    meta = MetaEvolution(
        evaluator,
        MetaConfig(population_size=6, generations=3, random_seed=5, max_workers=2, log_interval=0),
    )
    result = meta.run()

    assert result.best.fitness == result.stats[-1].best_fitness
    assert result.stats[-1].best_fitness >= result.stats[0].best_fitness
    fitness = [c.fitness for c in result.candidates]
    assert fitness == sorted(fitness, reverse=True)
    assert len({c.vector for c in result.candidates}) == len(result.candidates)
    for cand in result.candidates:
        assert evaluator.space.clamp(cand.vector) == cand.vector
        assert cand.config == evaluator.inner_config(cand.vector)



def test_permutation_space_offers_only_permutation_operators():
    space = HyperParamSpace.default(permutation=True)
    assert space.choices("crossover") == ["pmx", "edge", "order", "cycle"]
    assert space.choices("mutation") == ["swap", "scramble", "inversion"]
    assert space.choices("population_size") is None
    assert space.choices("missing") is None


def test_adding_an_unfit_problem_fails_before_any_run():
    evaluator = HyperEvaluator(HyperParamSpace.default(), _base_config(), inner_runs=1)
    with pytest.raises(ConfigurationError, match="does not preserve permutations"):
        evaluator.add(TravellingSalesmanProblem(num_cities=6))
    assert evaluator.targets == []

    permutations = HyperEvaluator(HyperParamSpace.default(permutation=True), _base_config())
    with pytest.raises(ConfigurationError, match="needs a permutation problem"):
        permutations.add(KnapsackProblem(num_items=10, seed=1))


def test_meta_evolution_over_a_permutation_problem():
    base = EvolveConfig.from_dict(
        {"crossover": {"kind": "pmx"}, "mutation": {"kind": "inversion"}, "log_interval": 0}
    )
    evaluator = HyperEvaluator(
        HyperParamSpace.default(population_size=(10, 20), permutation=True),
        base,
        inner_runs=1,
        inner_generations=3,
        seed=2,
    ).add(TravellingSalesmanProblem(num_cities=8, seed=4))
    result = MetaEvolution(
        evaluator,
        MetaConfig(population_size=4, generations=2, random_seed=9, max_workers=2, log_interval=0),
    ).run()

    assert evaluator.inner_failures == 0
    assert result.best.fitness > 0.0
    for cand in result.candidates:
        assert cand.config.crossover.kind.value in {"pmx", "edge", "order", "cycle"}
        assert cand.config.mutation.kind.value in {"swap", "scramble", "inversion"}

@pytest.mark.slow
def test_meta_evolution_beats_a_random_configuration():
    space = HyperParamSpace.default()
    evaluator = HyperEvaluator(
        space, _base_config(), inner_runs=3, inner_generations=50, seed=7
    ).add(KnapsackProblem(num_items=100, seed=7))
    baseline = evaluator.evaluate(space.random(np.random.default_rng(123)))

    result = MetaEvolution(evaluator, MetaConfig(population_size=20, random_seed=11)).run()
    assert result.best.fitness > baseline
