from collections import Counter

import numpy as np
import pytest

from helpers import make_individual
from memega.evolution.strategies.selectors import RouletteSelector, SusSelector, selection_weights
from memega.exceptions import InvalidFitnessError

SELECTORS = [SusSelector, RouletteSelector]


def _population(fitnesses):
    return [make_individual((i,), f) for i, f in enumerate(fitnesses)]


def test_weights_shift_negative_fitness_to_zero():
    weights = selection_weights(_population([-1.0, 0.0, 1.0]))
    assert weights.tolist() == [0.0, 1.0, 2.0]


def test_weights_ignore_failed_individuals():
    weights = selection_weights(_population([float("-inf"), 2.0, 3.0]))
    assert weights.tolist() == [0.0, 2.0, 3.0]


def test_weights_prefer_selection_fitness():
    ind = make_individual((0,), 10.0, selection_fitness=2.5)
    assert selection_weights([ind]).tolist() == [2.5]


@pytest.mark.parametrize(
    "fitnesses",
    [
        [0.0, 0.0, 0.0],
        [-2.0, -2.0],
        [float("-inf"), float("-inf")],
    ],
)
@pytest.mark.parametrize("selector_cls", SELECTORS)
def test_no_positive_mass_raises(selector_cls, fitnesses, rng):
    with pytest.raises(InvalidFitnessError):
        selector_cls()(_population(fitnesses), 4, rng)


@pytest.mark.parametrize("selector_cls", SELECTORS)
def test_returns_requested_count(selector_cls, rng):
    picked = selector_cls()(_population([1.0, 2.0, 3.0]), 7, rng)
    assert len(picked) == 7
    assert selector_cls()(_population([1.0]), 0, rng) == []


@pytest.mark.parametrize("selector_cls", SELECTORS)
def test_zero_weight_individuals_never_picked(selector_cls, rng):
    population = _population([-1.0, 0.0, 1.0])
    for _ in range(20):
        picked = selector_cls()(population, 30, rng)
        assert all(ind.genome != (0,) for ind in picked)


def test_sus_counts_match_expectation_exactly(rng):
    population = _population([1.0, 1.0, 2.0])
    for _ in range(50):
        counts = Counter(ind.genome[0] for ind in SusSelector()(population, 4, rng))
        assert counts == Counter({0: 1, 1: 1, 2: 2})


def test_roulette_is_proportional():
    rng = np.random.default_rng(0)
    population = _population([1.0, 3.0])
    picked = RouletteSelector()(population, 4000, rng)
    share = sum(1 for ind in picked if ind.genome == (1,)) / len(picked)
    assert share == pytest.approx(0.75, abs=0.05)
