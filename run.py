from datetime import datetime, timezone
import signal
import threading
import time

from dotenv import load_dotenv
import hydra
from loguru import logger
from omegaconf import DictConfig

from memega.config import build_evolve_config, build_meta, build_problem, register_resolvers
from memega.evolution.engine import EvolutionEngine, StatsSink
from memega.evolution.evaluation import WorkerPool
from memega.evolution.meta import MetaEvolution
from memega.exceptions import ConfigurationError, InvalidFitnessError
from memega.utils.logger_setup import setup_logger
from memega.utils.trackers import QueuedWriter, TensorBoardConfig, TrackerStatsSink, init_tensorboard


def _install_cancel_handler(cancel: threading.Event) -> None:
    def _handler(signum, _frame):
        logger.warning("Signal {} received, stopping after the current generation", signum)
        cancel.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def run_experiment(cfg: DictConfig) -> None:
    start_time = time.time()

    logger.info("=" * 80)
    logger.info("memega {} run", cfg.mode)
    logger.info("=" * 80)
    logger.info(f"Problem: {cfg.problem._target_}")
    logger.info(f"Start time: {datetime.now(timezone.utc).isoformat()}")

    writer: QueuedWriter | None = None
    cancel = threading.Event()
    _install_cancel_handler(cancel)
    try:
        logger.info("Step 1/3: Building problem and configuration...")
        problem = build_problem(cfg.problem)
        evolve_config = build_evolve_config(cfg.evolution)
        sinks: list[StatsSink] = []
        if cfg.tensorboard.enabled:
            writer = init_tensorboard(TensorBoardConfig(logdir=cfg.tensorboard.logdir))
            sinks.append(TrackerStatsSink(writer, prefix=cfg.mode))
        logger.info("Step 1/3: Complete")

        logger.info("Step 2/3: Running...")
        if cfg.mode == "meta":
            evaluator, outer = build_meta(cfg.meta, evolve_config, problem)
            result = MetaEvolution(evaluator, outer, sinks=sinks).run(
                cancel=cancel, timeout=cfg.timeout
            )
            logger.info("Step 2/3: Complete")
            logger.info("Step 3/3: Top candidates")
            for rank, cand in enumerate(result.candidates[:5], start=1):
                logger.info("  #{} fitness={:.4f} {}", rank, cand.fitness, cand.description)
        elif cfg.mode == "evolve":
            engine = EvolutionEngine(problem, evolve_config, sinks=sinks)
            result = engine.run(cancel=cancel, timeout=cfg.timeout)
            logger.info("Step 2/3: Complete ({})", result.stop_reason.value)
            best = result.best
            logger.info("Step 3/3: Best fitness {:.6f}", result.best_fitness)
            if best is not None:
                logger.info("  Genome: {}", problem.describe(best.genome))
        else:
            raise ConfigurationError(f"Unknown mode '{cfg.mode}', expected 'evolve' or 'meta'")

    except InvalidFitnessError as e:
        logger.error(
            f"Run aborted at generation {e.generation}: {e} "
            f"(last recorded stats: {e.stats[-1].to_dict() if e.stats else None})"
        )
        raise
    except Exception as e:  # pylint: disable=broad-except
        logger.error(f"Run failed: {e}")
        raise
    finally:
        logger.info("Starting cleanup...")
        if writer is not None:
            writer.close()
        WorkerPool.shutdown(wait=False)
        duration = time.time() - start_time
        logger.info(f"Total duration: {duration:.2f} seconds")
        logger.info(f"End time: {datetime.now(timezone.utc).isoformat()}")
        logger.info("=" * 80)


@hydra.main(version_base=None, config_path="config", config_name="config")
def main(cfg: DictConfig) -> None:
    """Main entrypoint with Hydra configuration management."""
    load_dotenv()

    log_file_path = setup_logger(
        log_dir=cfg.logging.log_dir,
        level=cfg.logging.level,
        rotation=cfg.logging.rotation,
        retention=cfg.logging.retention,
    )
    logger.info(
        "Working directory: {}.",
        hydra.core.hydra_config.HydraConfig.get().runtime.output_dir,
    )
    logger.info(f"Log file: {log_file_path}")
    run_experiment(cfg)


if __name__ == "__main__":
    register_resolvers()
    main()
