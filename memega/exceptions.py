from __future__ import annotations

from typing import Any


class MemegaError(Exception):
    """Base for all memega exceptions."""

    pass


class ConfigurationError(MemegaError, ValueError):
    """Invalid or out-of-range configuration, raised before any generation runs."""

    pass


class InvalidFitnessError(MemegaError):
    """Fitness-proportional selection found no positive fitness mass.

    Carries the statistics recorded up to the failing generation so callers
    can still report the last valid state of the run.
    """

    def __init__(
        self,
        message: str,
        *,
        generation: int | None = None,
        stats: list[Any] | None = None,
    ):
        super().__init__(message)
        self.generation = generation
        self.stats = list(stats or [])


class EvaluationFailure(MemegaError):
    """Evaluator failed for a specific genome.

    Never propagated out of the parallel evaluator: failures are recorded on
    the evaluation report and surface only as aggregate counts.
    """

    def __init__(self, genome: Any, cause: BaseException | str):
        super().__init__(f"Evaluation failed for genome {genome!r}: {cause}")
        self.genome = genome
        self.cause = cause


class EvolutionError(MemegaError):
    """Evolution process failures."""

    pass
