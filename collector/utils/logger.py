"""Logging configuration"""

import logging
import sys
from typing import Optional, Union


def setup_logger(
    name: Optional[str] = None,
    level: Union[int, str] = logging.INFO,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with consistent formatting

    Args:
        name: Logger name (None configures the root logger)
        level: Logging level, numeric or by name
        format_string: Custom format string

    Returns:
        Configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if format_string is None:
        format_string = (
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(handler)

    return logger
