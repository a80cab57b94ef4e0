"""Logging configuration for the dashboard client."""

from __future__ import annotations

import logging
import sys
from typing import IO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Transport libraries are chatty at INFO
NOISY_LOGGERS = ("websockets", "httpx", "httpcore")


def configure_logging(level: str = "INFO", stream: IO[str] | None = None) -> None:
    """Configure root logging with a single console handler."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    # Avoid duplicate handlers on re-init
    root.handlers.clear()
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
