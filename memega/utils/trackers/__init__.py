from memega.utils.trackers.backends.memory import InMemoryBackend
from memega.utils.trackers.backends.tensorboard import TensorBoardBackend
from memega.utils.trackers.base import MetricWriter
from memega.utils.trackers.configs import TensorBoardConfig
from memega.utils.trackers.core import MetricBackend, QueuedWriter
from memega.utils.trackers.sink import TrackerStatsSink

_tb_default: QueuedWriter | None = None


def init_tensorboard(cfg: TensorBoardConfig) -> QueuedWriter:
    """Process-wide TensorBoard writer; later calls return the first one."""
    global _tb_default
    if _tb_default is None:
        _tb_default = QueuedWriter(
            TensorBoardBackend(cfg), queue_size=cfg.queue_size, flush_secs=cfg.flush_secs
        )
    return _tb_default


__all__ = [
    "InMemoryBackend",
    "MetricBackend",
    "MetricWriter",
    "QueuedWriter",
    "TensorBoardBackend",
    "TensorBoardConfig",
    "TrackerStatsSink",
    "init_tensorboard",
]
