"""
Logging for the retargeting engine and its host.

Every logger lives under the ``retarget`` namespace (``retarget.motion.engine``,
``retarget.motion.flip_guard`` ...), so a host embedding the engine can route
or silence it as one unit. Per-bone skip and flip messages go out at DEBUG and
can be raised per component without touching the rest.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

ROOT_LOGGER_NAME = "retarget"


class ColoredFormatter(logging.Formatter):
    """Level and component coloring for an interactive console."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy so file handlers on the same record stay plain
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        record.name = f"\033[34m{record.name}{self.RESET}"
        return super().format(record)


def _parse_level(level) -> int:
    if isinstance(level, int):
        return level
    value = getattr(logging, str(level).upper(), None)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def set_component_level(component: str, level) -> logging.Logger:
    """
    Override the level of one engine component.

    Args:
        component: Name below ``retarget``, e.g. "motion.flip_guard"
        level: Level name or number
    """
    logger = get_logger(component)
    logger.setLevel(_parse_level(level))
    return logger


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
    component_levels: Optional[Mapping[str, str]] = None,
    color: Optional[bool] = None,
) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the ``retarget`` logger.

    Handlers are installed once; later calls only adjust levels, so a host
    and the engine may both call this.

    Args:
        level: Level for the whole namespace (DEBUG, INFO, WARNING, ERROR)
        log_file: File name stem under ``log_dir``; a timestamp is appended
        log_dir: Directory for log files
        component_levels: Component name -> level, e.g. from ``app.log_levels``
        color: Force console coloring on or off; default is on for a TTY

    Returns:
        The ``retarget`` logger
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_parse_level(level))

    for component, component_level in (component_levels or {}).items():
        set_component_level(component, component_level)

    if root_logger.handlers:
        return root_logger

    if color is None:
        color = sys.stdout.isatty()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    formatter_cls = ColoredFormatter if color else logging.Formatter
    console_handler.setFormatter(formatter_cls(
        "%(asctime)s │ %(levelname)-8s │ %(name)-28s │ %(message)s",
        datefmt="%H:%M:%S"
    ))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = log_path / f"{log_file}_{timestamp}.log"

        file_handler = logging.FileHandler(file_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to file: {file_path}")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for an engine component, e.g. ``get_logger("motion.resolver")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
