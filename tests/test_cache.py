from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

from memega.evolution.evaluation import FitnessCache
from memega.problems.base import Evaluator


class CountingEvaluator(Evaluator):
    def __init__(self, fn=lambda g: float(sum(g))):
        self.fn = fn
        self.calls = 0
        self._lock = threading.Lock()

    def evaluate(self, genome):
        with self._lock:
            self.calls += 1
        return self.fn(genome)


class Colliding:
    """Distinct values that all share one hash."""

    def __init__(self, value):
        self.value = value

    def __hash__(self):
        return 42

    def __eq__(self, other):
        return isinstance(other, Colliding) and other.value == self.value


def test_second_lookup_is_a_hit():
    cache = FitnessCache(max_entries=10, num_shards=2)
    evaluator = CountingEvaluator()
    assert cache.get_or_compute((1, 2), evaluator) == 3.0
    assert cache.get_or_compute((1, 2), evaluator) == 3.0
    assert evaluator.calls == 1
    stats = cache.stats
    assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)
    assert stats.hit_rate == pytest.approx(0.5)


def test_evicts_least_recently_used():
    cache = FitnessCache(max_entries=2, num_shards=1)
    cache.put((1,), 1.0)
    cache.put((2,), 2.0)
    assert cache.get((1,)) == 1.0
    cache.put((3,), 3.0)
    assert len(cache) == 2
    assert (1,) in cache
    assert (2,) not in cache
    assert cache.stats.evictions == 1


def test_hash_collision_is_a_miss():
    cache = FitnessCache(max_entries=10, num_shards=1)
    first, second = (Colliding(1),), (Colliding(2),)
    evaluator = CountingEvaluator(lambda g: float(g[0].value))
    assert cache.get_or_compute(first, evaluator) == 1.0
    assert cache.get_or_compute(second, evaluator) == 2.0
    assert evaluator.calls == 2
    assert cache.get(second) == 2.0
    assert cache.get(first) is None


def test_failures_are_not_cached():
    cache = FitnessCache(max_entries=10)

    def boom(genome):
        raise RuntimeError("boom")

    evaluator = CountingEvaluator(boom)
    for _ in range(2):
        with pytest.raises(RuntimeError):
            cache.get_or_compute((1,), evaluator)
    assert evaluator.calls == 2
    assert len(cache) == 0


def test_nan_is_not_cached():
    cache = FitnessCache(max_entries=10)
    evaluator = CountingEvaluator(lambda g: float("nan"))
    cache.get_or_compute((1,), evaluator)
    cache.get_or_compute((1,), evaluator)
    assert evaluator.calls == 2
    assert (1,) not in cache


def test_clear_empties_all_shards():
    cache = FitnessCache(max_entries=100, num_shards=4)
    for i in range(20):
        cache.put((i,), float(i))
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("kwargs", [{"max_entries": 0}, {"num_shards": 0}])
def test_rejects_non_positive_sizes(kwargs):
    with pytest.raises(ValueError):
        FitnessCache(**kwargs)


def test_concurrent_access_stays_consistent():
    cache = FitnessCache(max_entries=64, num_shards=4)
    evaluator = CountingEvaluator()
    genomes = [(i, i + 1) for i in range(100)] * 5

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda g: cache.get_or_compute(g, evaluator), genomes))

    assert results == [float(sum(g)) for g in genomes]
    assert len(cache) <= 64
    stats = cache.stats
    assert stats.hits + stats.misses == len(genomes)
