import math

import numpy as np
import pytest

from helpers import VectorProblem, make_individual
from memega.evolution.population import WORST_FITNESS, Population
from memega.evolution.strategies.distance import DistanceMatrix, kendall_tau
from memega.evolution.strategies.niching import NoNiching, SharedFitnessNiching, speciate
from memega.evolution.strategies.survival import (
    SpeciesTopProportionSurvival,
    TopProportionSurvival,
)

CLUSTERED = [0.0, 0.1, 0.2, 10.0, 10.1, 20.0]


def _pool(values, fitnesses=None):
    fitnesses = values if fitnesses is None else fitnesses
    return Population(make_individual((v,), f) for v, f in zip(values, fitnesses))


@pytest.fixture
def line_problem():
    return VectorProblem(dim=1)


def test_distance_matrix_is_symmetric(line_problem):
    matrix = DistanceMatrix.compute([(0.0,), (3.0,), (7.0,)], line_problem)
    assert matrix[0, 1] == matrix[1, 0] == 3.0
    assert matrix.max() == 7.0
    assert matrix.mean() == pytest.approx((3.0 + 7.0 + 4.0) / 3)


def test_kendall_tau_counts_discordant_pairs():
    assert kendall_tau((0, 1, 2, 3), (0, 1, 2, 3)) == 0
    assert kendall_tau((0, 1, 2, 3), (3, 2, 1, 0)) == 6
    assert kendall_tau((0, 1, 2), (1, 0, 2)) == 1


def test_speciate_claims_within_radius():
    values = np.array([0.0, 1.0, 5.0, 5.5])
    dists = np.abs(values[:, None] - values[None, :])
    ids, count = speciate(dists, [0, 1, 2, 3], 1.0)
    assert count == 2
    assert ids == [1, 1, 2, 2]


def test_no_niching_copies_raw_fitness(line_problem):
    pool, report = NoNiching()(_pool(CLUSTERED), line_problem)
    assert [ind.selection_fitness for ind in pool] == CLUSTERED
    assert all(ind.species_id is None for ind in pool)
    assert report.species_count == 0
    assert math.isnan(report.mean_distance)


def test_species_target_finds_requested_count(line_problem):
    pool, report = SharedFitnessNiching(species_target=3)(_pool(CLUSTERED), line_problem)
    assert report.species_count == 3
    assert pool.species_count() == 3
    assert math.isfinite(report.mean_distance)
    by_genome = {ind.genome[0]: ind for ind in pool}
    # Species are numbered from the fittest leader down.
    assert by_genome[20.0].species_id == 1
    assert by_genome[10.0].species_id == by_genome[10.1].species_id == 2
    assert by_genome[0.0].species_id == by_genome[0.2].species_id == 3


def test_sharing_penalises_crowded_individuals(line_problem):
    pool, _ = SharedFitnessNiching(species_target=3)(_pool(CLUSTERED), line_problem)
    for ind in pool:
        assert ind.fitness == ind.genome[0]
        if ind.genome[0] == 20.0:
            assert ind.selection_fitness == pytest.approx(20.0)
        elif ind.fitness > 0:
            assert ind.selection_fitness < ind.fitness


def test_fixed_radius_mode(line_problem):
    pool, report = SharedFitnessNiching(radius=1.0)(_pool(CLUSTERED), line_problem)
    assert report.species_count == 3
    assert report.radius == 1.0


def test_negative_fitness_is_shifted_before_sharing(line_problem):
    pool, _ = SharedFitnessNiching(radius=1.0)(
        _pool([0.0, 50.0, 100.0], [-5.0, -1.0, 3.0]), line_problem
    )
    assert [ind.selection_fitness for ind in pool] == pytest.approx([0.0, 4.0, 8.0])


def test_failed_individuals_stay_worst(line_problem):
    pool, _ = SharedFitnessNiching(radius=1.0)(
        _pool([0.0, 50.0], [WORST_FITNESS, 2.0]), line_problem
    )
    assert pool[0].selection_fitness == WORST_FITNESS
    assert pool[1].selection_fitness == 2.0


@pytest.mark.parametrize(
    "kwargs",
    [{}, {"species_target": 2, "radius": 1.0}, {"species_target": 0}, {"radius": -1.0}],
)
def test_shared_fitness_argument_validation(kwargs):
    with pytest.raises(ValueError):
        SharedFitnessNiching(**kwargs)


def test_full_proportion_keeps_everyone():
    pool = [make_individual((i,), float(i)) for i in range(7)]
    survivors = TopProportionSurvival(1.0)(pool)
    assert {ind.genome for ind in survivors} == {ind.genome for ind in pool}


def test_top_proportion_rounds_up_and_keeps_tie_order():
    pool = [make_individual((i,), f) for i, f in enumerate([1.0, 3.0, 3.0, 2.0, 3.0])]
    survivors = TopProportionSurvival(0.5)(pool)
    assert [ind.genome[0] for ind in survivors] == [1, 2, 4]


def test_per_species_survival_keeps_every_species():
    pool = [
        make_individual((0,), 5.0, species_id=1),
        make_individual((1,), 2.0, species_id=1),
        make_individual((2,), 1.0, species_id=2),
        make_individual((3,), 4.0, species_id=1),
        make_individual((4,), 3.0, species_id=1),
    ]
    survivors = SpeciesTopProportionSurvival(0.5)(pool)
    assert [ind.genome[0] for ind in survivors] == [0, 3, 2]


@pytest.mark.parametrize("proportion", [0.0, -0.5, 1.5])
def test_survival_proportion_must_be_in_unit_interval(proportion):
    with pytest.raises(ValueError):
        TopProportionSurvival(proportion)
