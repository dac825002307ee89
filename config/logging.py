"""
Logging configuration for the employer identity core.

Every component logs through a child of the ``employer_identity`` logger so a
single handler setup covers the alias store, audit log, duplicate detector,
promotion queue and merge impact analyzer.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from config.settings import settings

# Create logs directory if it doesn't exist
LOG_DIR = Path(__file__).parent.parent / "logs"
LOG_DIR.mkdir(exist_ok=True)

ROOT_LOGGER_NAME = "employer_identity"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        name: Logger name
        log_file: File to write to (defaults to logs/<name>.log)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file or LOG_DIR / f"{name}.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Return the child logger for a component, e.g. ``employer_identity.aliases``."""
    return logger.getChild(component)


# Default logger
logger = setup_logging()
