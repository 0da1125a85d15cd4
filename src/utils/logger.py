"""
Logging for the TTC pipeline.

All component loggers live below one package logger (``ttc_fusion``), so a
single ``setup_logger`` call decides level, format and destinations for the
whole run. Classes get a logger named after themselves via LoggerMixin.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOGGER_NAME = "ttc_fusion"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_level(level: str) -> int:
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown logging level '{level}'")
    return value


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure a logger, replacing any handlers it already has.

    Args:
        name: Logger name.
        level: DEBUG, INFO, WARNING or ERROR.
        log_file: Also write to this file (parent dirs are created).
        console: Write to stdout.
        format_string: Record format, DEFAULT_FORMAT if None.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_parse_level(level))
    logger.handlers = []

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    handlers = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Configure the package logger from the ``logging`` config section."""
    section = config.get("logging") or {}
    return setup_logger(
        level=section.get("level", "INFO"),
        log_file=section.get("file"),
    )


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Logger below the package logger.

    ``get_logger("box_matcher")`` returns ``ttc_fusion.box_matcher``; names
    already inside the hierarchy are used unchanged.
    """
    if name != DEFAULT_LOGGER_NAME and not name.startswith(DEFAULT_LOGGER_NAME + "."):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class LoggerMixin:
    """Gives a class a ``logger`` property named after the class."""

    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


class ProgressLogger:
    """
    Percentage progress messages for frame loops.

    Example:
        >>> with ProgressLogger(len(sync), description="TTC") as progress:
        ...     for frame in sync.iterate_frames():
        ...         progress.update()
    """

    def __init__(
        self,
        total: int,
        logger: Optional[logging.Logger] = None,
        description: str = "Processing",
        log_interval: int = 10,
    ):
        """
        Args:
            total: Number of items.
            logger: Destination logger (package logger if None).
            description: Message prefix.
            log_interval: Minimum percentage step between messages.
        """
        self.total = total
        self.logger = logger or get_logger()
        self.description = description
        self.log_interval = log_interval

        self.current = 0
        self.last_logged_pct = -1

    def update(self, n: int = 1) -> None:
        """Advance by ``n`` items and log when the next step is reached."""
        self.current += n
        pct = int(100 * self.current / self.total) if self.total > 0 else 100

        if pct >= self.last_logged_pct + self.log_interval:
            self.logger.info(f"{self.description}: {self.current}/{self.total} ({pct}%)")
            self.last_logged_pct = pct

    def __enter__(self):
        self.logger.info(f"{self.description}: Starting ({self.total} items)")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.logger.info(f"{self.description}: Completed")
        else:
            self.logger.error(f"{self.description}: Failed - {exc_val}")
