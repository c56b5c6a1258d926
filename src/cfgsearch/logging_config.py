"""
Logging configuration for the command line.
"""
from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "cfgsearch"


def setup_logging(level: str = "INFO") -> None:
    """Configure process-wide logging; calling it again only changes the level."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)
