"""Fitness-proportional parent selection."""

from __future__ import annotations

from abc import ABC, abstractmethod
import math
from typing import Sequence

from loguru import logger
import numpy as np

from memega.evolution.population import Individual
from memega.exceptions import InvalidFitnessError


def selection_weights(individuals: Sequence[Individual]) -> np.ndarray:
    """Non-negative selection weights for ``individuals``.

    Non-finite fitness (failed evaluations) gets weight zero. If any finite
    fitness is negative, all finite values are shifted so the minimum is zero.

    Raises:
        InvalidFitnessError: when the total weight is not positive.
    """
    raw = [
        ind.selection_fitness if ind.selection_fitness is not None else ind.fitness
        for ind in individuals
    ]
    finite = [f for f in raw if f is not None and math.isfinite(f)]
    if not finite:
        raise InvalidFitnessError("No individual has a finite fitness to select by")

    shift = -min(finite) if min(finite) < 0 else 0.0
    if shift:
        logger.debug("[Selection] Shifted fitness by {:.4f} to non-negative", shift)
    weights = np.array(
        [f + shift if f is not None and math.isfinite(f) else 0.0 for f in raw],
        dtype=float,
    )
    total = float(weights.sum())
    if not math.isfinite(total) or total <= 0.0:
        raise InvalidFitnessError(
            f"Total selection fitness must be positive, got {total}"
        )
    return weights


class Selector(ABC):
    """Pick ``n`` individuals with replacement, proportionally to selection fitness."""

    @abstractmethod
    def __call__(
        self, individuals: Sequence[Individual], n: int, rng: np.random.Generator
    ) -> list[Individual]:
        pass


class SusSelector(Selector):
    """Stochastic universal sampling.

    One random offset and ``n`` evenly spaced pointers over the cumulative
    weights, which gives lower variance than independent draws.
    """

    def __call__(
        self, individuals: Sequence[Individual], n: int, rng: np.random.Generator
    ) -> list[Individual]:
        if n <= 0:
            return []
        weights = selection_weights(individuals)
        cumulative = np.cumsum(weights)
        step = cumulative[-1] / n
        pointers = rng.uniform(0.0, step) + step * np.arange(n)
        picks = np.searchsorted(cumulative, pointers, side="right")
        # Guard against float error pushing the last pointer past the end.
        picks = np.minimum(picks, len(individuals) - 1)
        return [individuals[i] for i in picks]


class RouletteSelector(Selector):
    """Roulette wheel selection: ``n`` independent weighted draws."""

    def __call__(
        self, individuals: Sequence[Individual], n: int, rng: np.random.Generator
    ) -> list[Individual]:
        if n <= 0:
            return []
        weights = selection_weights(individuals)
        picks = rng.choice(len(individuals), size=n, replace=True, p=weights / weights.sum())
        return [individuals[i] for i in picks]
