"""Loguru configuration shared by the CLI entry point and notebooks."""

from datetime import datetime, timezone
from pathlib import Path
import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<yellow>{line}</yellow> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {name}:{function}:{line} | {message}"


def setup_logger(
    log_dir: str | Path | None = "logs",
    level: str = "INFO",
    rotation: str = "50 MB",
    retention: str = "30 days",
    enable_colors: bool = True,
    run_name: str = "memega",
) -> Path | None:
    """
    Replace loguru's default sink with a console sink and, optionally, a file sink.

    Args:
        log_dir: Directory for the rotated log file; None logs to the console only
        level: Minimum level for both sinks
        rotation: Loguru rotation policy for the file sink (e.g. "50 MB")
        retention: Loguru retention policy for rotated files (e.g. "30 days")
        enable_colors: Colorize console output when stderr is a TTY
        run_name: Prefix of the log file name

    Returns:
        Path of the log file, or None without a file sink
    """
    logger.remove()

    colorize = enable_colors and sys.stderr.isatty()
    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=colorize,
        backtrace=True,
        diagnose=False,
    )

    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"{run_name}_{timestamp}.log"
    logger.add(
        log_file,
        level=level,
        format=FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        compression="zip",
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
    logger.debug("Logging to console and {} (level={}, colors={})", log_file, level, colorize)
    return log_file
