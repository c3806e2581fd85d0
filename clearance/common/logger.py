"""Logging setup for the clearance portal.

Everything logs through ``logging.getLogger(__name__)``; handlers are only
attached to the ``clearance`` root logger, so every ``clearance.*`` module
inherits the console stream and the optional rotating file.
"""

import logging
import logging.handlers
import os
from typing import Optional

from clearance.core.config import Settings

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _resolve_level(level: str) -> int:
    level_upper = level.upper()
    if level_upper not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}")
    return getattr(logging, level_upper)


def setup_logger(
    name: str = "clearance",
    log_dir: str = "logs",
    level: str = "INFO",
    file_logging: bool = False,
    console_logging: bool = True,
    log_format: Optional[str] = None,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console and rotating file handlers to a logger.

    Calling it again only updates the level; handlers are added once.

    Args:
        name: Logger name, the package root by default
        log_dir: Directory for ``<name>.log``
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        file_logging: Write to a rotating file in ``log_dir``
        console_logging: Write to stderr
        log_format: Custom format string
        max_bytes: File size before rotation
        backup_count: Rotated files to keep

    Raises:
        ValueError: If the level name is not a standard logging level
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=ISO_DATE_FORMAT)
    handlers = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))
    if console_logging:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the ``clearance`` logger from application settings.

    SQL statement logging follows ``debug``.
    """
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)
    return setup_logger(
        "clearance",
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.file_logging,
    )
