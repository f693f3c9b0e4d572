import math

import pytest

from memega.evolution.engine import EvolutionEngine, EvolveConfig
from memega.problems import TargetStringProblem
from memega.utils.trackers import (
    InMemoryBackend,
    QueuedWriter,
    TensorBoardBackend,
    TensorBoardConfig,
    TrackerStatsSink,
)
from memega.utils.trackers.core import MetricBackend


class ExplodingBackend(InMemoryBackend):
    def write_scalar(self, tag, value, step, wall_time):
        if tag == "bad":
            raise RuntimeError("backend down")
        super().write_scalar(tag, value, step, wall_time)


def test_writer_delivers_events_and_closes_backend():
    backend = InMemoryBackend()
    writer = QueuedWriter(backend)
    writer.scalar("loss", 1.0)
    writer.scalar("loss", 0.5)
    writer.scalar("acc", 0.9, step=10)
    writer.text("note", "hello")
    writer.hist("weights", [1.0, 2.0], step=1)
    writer.close()

    assert backend.opened and backend.closed
    assert backend.scalars["loss"] == [(0, 1.0), (1, 0.5)]
    assert backend.scalars["acc"] == [(10, 0.9)]
    assert backend.texts["note"] == [(0, "hello")]
    assert backend.hists["weights"] == [(1, [1.0, 2.0])]


def test_scoped_writer_prefixes_and_sanitises_tags():
    backend = InMemoryBackend()
    writer = QueuedWriter(backend)
    writer.scoped("run", "a").scalar("best fitness", 2.0, step=0)
    writer.close()
    assert backend.scalars["run/a/best_fitness"] == [(0, 2.0)]


def test_backend_errors_do_not_stop_the_writer():
    backend = ExplodingBackend()
    writer = QueuedWriter(backend)
    writer.scalar("bad", 1.0)
    writer.scalar("good", 2.0)
    writer.close()
    assert backend.scalars["good"] == [(0, 2.0)]


def test_writes_after_close_are_ignored():
    backend = InMemoryBackend()
    writer = QueuedWriter(backend)
    writer.close()
    writer.scalar("late", 1.0)
    writer.close()
    assert "late" not in backend.scalars


def test_stats_sink_records_every_generation():
    backend = InMemoryBackend()
    writer = QueuedWriter(backend)
    cfg = EvolveConfig.from_dict(
        {"population_size": 20, "generations": 3, "random_seed": 0, "log_interval": 0}
    )
    result = EvolutionEngine(
        TargetStringProblem(), cfg, sinks=[TrackerStatsSink(writer)], verbose=False
    ).run()
    writer.close()

    best = backend.scalars["evolution/best_fitness"]
    assert [step for step, _ in best] == [0, 1, 2, 3]
    assert [value for _, value in best] == [s.best_fitness for s in result.stats]
    assert len(backend.scalars["evolution/stagnant"]) == 4
    # No niching, so the distance is NaN and never written.
    assert math.isnan(result.stats[0].mean_pairwise_distance)
    assert "evolution/mean_pairwise_distance" not in backend.scalars


@pytest.mark.parametrize("method", ["open", "close"])
def test_backend_contract_must_be_implemented(method):
    with pytest.raises(NotImplementedError):
        getattr(MetricBackend(), method)()


def test_tensorboard_backend_writes_event_files(tmp_path):
    backend = TensorBoardBackend(TensorBoardConfig(logdir=tmp_path / "tb"))
    writer = QueuedWriter(backend, flush_secs=0.1)
    writer.scalar("evolution/best_fitness", 3.0, step=0)
    writer.text("run/config", "population_size=10")
    writer.close()
    assert list((tmp_path / "tb").glob("events.out.tfevents.*"))


def test_tensorboard_backend_requires_open(tmp_path):
    backend = TensorBoardBackend(TensorBoardConfig(logdir=tmp_path / "tb"))
    with pytest.raises(RuntimeError):
        backend.write_scalar("x", 1.0, 0, 0.0)
