"""Process-wide thread pool shared by every ParallelEvaluator.

Evaluations submitted from inside a pool thread (a meta-GA inner run) must
not block on the same pool, so callers check :py:meth:`WorkerPool.in_worker`
and fall back to evaluating in the calling thread.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import os
import threading

from loguru import logger

__all__ = ["WorkerPool"]

THREAD_NAME_PREFIX = "memega-eval"


class WorkerPool:
    _executor: ThreadPoolExecutor | None = None
    _lock = threading.Lock()

    @staticmethod
    def default_max_workers() -> int:
        return max(4, (os.cpu_count() or 4) * 2)

    @classmethod
    def get_executor(cls) -> ThreadPoolExecutor:
        with cls._lock:
            if cls._executor is None:
                cls._executor = ThreadPoolExecutor(
                    max_workers=cls.default_max_workers(),
                    thread_name_prefix=THREAD_NAME_PREFIX,
                )
                logger.debug(
                    "[WorkerPool] Created shared ThreadPoolExecutor with {} workers",
                    cls._executor._max_workers,  # type: ignore[attr-defined]
                )
            return cls._executor

    @classmethod
    def max_workers(cls) -> int:
        return cls.get_executor()._max_workers  # type: ignore[attr-defined]

    @staticmethod
    def in_worker() -> bool:
        return threading.current_thread().name.startswith(THREAD_NAME_PREFIX)

    @classmethod
    def shutdown(cls, wait: bool = True) -> None:
        with cls._lock:
            if cls._executor is not None:
                cls._executor.shutdown(wait=wait)
                cls._executor = None
                logger.debug("[WorkerPool] Shut down shared executor")
