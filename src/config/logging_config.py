# src/config/logging_config.py

"""Per-run timestamped logging configuration for the price sweep.

Each sweep writes a dedicated log file inside ``logs/`` named after its
launch time (e.g. ``logs/sweep_20260214_153045.log``).  Every
``price_sweep.*`` logger routes through it, so provider retries, catalog
plans and per-item failures of one run land in the same file.

The console only carries progress lines and warnings for the operator;
the file keeps everything down to DEBUG.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER = "price_sweep"

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_level() -> int:
    """Resolve ``LOG_LEVEL`` to a logging level, defaulting to INFO."""
    level = logging.getLevelName(str(Settings.LOG_LEVEL).upper())
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(log_file: Path) -> list[logging.Handler]:
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level())
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )
    return [file_handler, console_handler]


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Attach the per-run file and console handlers.

    Args:
        logs_dir: Directory for the run's log file; ``Settings.LOGS_DIR``
            when omitted.

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"sweep_{timestamp}.log"

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)

    # Already configured (repeated calls in one process)
    if root_logger.handlers:
        return log_file

    for handler in _build_handlers(log_file):
        root_logger.addHandler(handler)

    root_logger.info("Logging initialised, log file: %s", log_file)
    return log_file
