"""
Logging helpers shared by every module.

Usage:
    from app.utils import get_logger

    log = get_logger(__name__)
    log.info(f"Provisioned roles for sponsor {sponsor.id}")
"""
import logging
import sys
from typing import Optional

from app.core import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(log_level: str = config.LOG_LEVEL) -> None:
    """Attach the application stdout handler to the root logger (once)."""
    global _handler

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Return a logger, configuring the handler on first use."""
    if _handler is None:
        configure_logging()
    return logging.getLogger(name)
