import math

from memega.evolution.population import Individual
from memega.problems.base import Problem


class VectorProblem(Problem):
    """Real vector in [low, high]^dim; fitness is the sum of genes."""

    def __init__(self, dim: int = 3, low: float = -100.0, high: float = 100.0):
        self.dim = dim
        self.low = low
        self.high = high

    def random_genome(self, rng):
        return tuple(float(v) for v in rng.uniform(self.low, self.high, size=self.dim))

    def random_gene(self, locus, rng):
        return float(rng.uniform(self.low, self.high))

    def gene_bounds(self, locus):
        return self.low, self.high

    def distance(self, a, b):
        return math.dist(a, b)

    def evaluate(self, genome):
        return float(sum(genome))


class ConstantProblem(Problem):
    """Digit strings whose fitness never changes."""

    def __init__(self, value: float = 1.0, length: int = 4):
        self.value = value
        self.length = length

    def random_gene(self, locus, rng):
        return int(rng.integers(0, 10))

    def random_genome(self, rng):
        return tuple(self.random_gene(i, rng) for i in range(self.length))

    def evaluate(self, genome):
        return self.value


def make_individual(genome, fitness=None, selection_fitness=None, species_id=None):
    return Individual(
        genome=tuple(genome),
        fitness=fitness,
        selection_fitness=fitness if selection_fitness is None else selection_fitness,
        species_id=species_id,
    )


def stats_equal(a, b) -> bool:
    """Compare GenerationStats sequences treating NaN as equal to NaN."""
    if len(a) != len(b):
        return False
    for x, y in zip(a, b):
        dx, dy = x.to_dict(), y.to_dict()
        for key in dx:
            vx, vy = dx[key], dy[key]
            if isinstance(vx, float) and math.isnan(vx):
                if not (isinstance(vy, float) and math.isnan(vy)):
                    return False
            elif vx != vy:
                return False
    return True
