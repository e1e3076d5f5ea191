"""Logging utilities."""

import logging
from pathlib import Path

from modlib.core.config import LoggingConfig


def setup_logging(config: LoggingConfig) -> None:
    """Setup application logging.

    Messages go to stderr, so command output on stdout stays clean, and to the
    configured log file when one is set.

    Args:
        config: Logging configuration
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, config.level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
