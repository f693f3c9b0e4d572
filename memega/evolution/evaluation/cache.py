from __future__ import annotations

from collections import OrderedDict
import math
import threading
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import BaseModel, Field, computed_field

if TYPE_CHECKING:
    from memega.problems.base import Evaluator, Genome


class CacheStats(BaseModel):
    """Counters aggregated over all shards."""

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    evictions: int = Field(default=0, ge=0)
    size: int = Field(default=0, ge=0)

    @computed_field
    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, int | float]:
        return self.model_dump()


class _Shard:
    __slots__ = ("lock", "entries", "capacity", "hits", "misses", "evictions")

    def __init__(self, capacity: int):
        self.lock = threading.Lock()
        # hash -> (genome, fitness), least recently used first
        self.entries: OrderedDict[int, tuple["Genome", float]] = OrderedDict()
        self.capacity = capacity
        self.hits = 0
        self.misses = 0
        self.evictions = 0


class FitnessCache:
    """Bounded, sharded LRU cache from genome to fitness.

    Each shard has its own lock, so lookups for genomes in different shards
    never contend. The evaluator always runs outside any lock: two threads
    missing on the same genome both compute it, and the later insert wins.
    A hash collision is detected by comparing the stored genome and is
    treated as a miss. Evaluation errors and NaN results are never cached.
    """

    def __init__(self, max_entries: int = 100_000, num_shards: int = 16):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if num_shards <= 0:
            raise ValueError("num_shards must be positive")
        num_shards = min(num_shards, max_entries)
        per_shard = -(-max_entries // num_shards)
        self.max_entries = max_entries
        self._shards = [_Shard(per_shard) for _ in range(num_shards)]
        logger.debug(
            "[FitnessCache] Init | max_entries={}, shards={}, per_shard={}",
            max_entries,
            num_shards,
            per_shard,
        )

    def _shard(self, key: int) -> _Shard:
        return self._shards[key % len(self._shards)]

    def get(self, genome: "Genome") -> float | None:
        key = hash(genome)
        shard = self._shard(key)
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is not None and entry[0] == genome:
                shard.entries.move_to_end(key)
                shard.hits += 1
                return entry[1]
            shard.misses += 1
            return None

    def put(self, genome: "Genome", fitness: float) -> None:
        if math.isnan(fitness):
            return
        key = hash(genome)
        shard = self._shard(key)
        with shard.lock:
            shard.entries[key] = (genome, fitness)
            shard.entries.move_to_end(key)
            while len(shard.entries) > shard.capacity:
                shard.entries.popitem(last=False)
                shard.evictions += 1

    def get_or_compute(self, genome: "Genome", evaluator: "Evaluator") -> float:
        """Return the cached fitness of ``genome``, evaluating it on a miss."""
        cached = self.get(genome)
        if cached is not None:
            return cached
        fitness = float(evaluator.evaluate(genome))
        self.put(genome, fitness)
        return fitness

    def __len__(self) -> int:
        return sum(len(s.entries) for s in self._shards)

    def __contains__(self, genome: "Genome") -> bool:
        key = hash(genome)
        shard = self._shard(key)
        with shard.lock:
            entry = shard.entries.get(key)
            return entry is not None and entry[0] == genome

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    @property
    def stats(self) -> CacheStats:
        hits = misses = evictions = size = 0
        for shard in self._shards:
            with shard.lock:
                hits += shard.hits
                misses += shard.misses
                evictions += shard.evictions
                size += len(shard.entries)
        return CacheStats(hits=hits, misses=misses, evictions=evictions, size=size)
