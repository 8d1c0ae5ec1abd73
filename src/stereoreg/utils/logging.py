"""
Logging Utilities

Sets up consistent console/file logging for the stereoreg package.
Setting STEREOREG_RANSAC_DEBUG=1 lowers the default level to DEBUG, so the
per-hypothesis RANSAC messages show up.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


def _default_level() -> int:
    if os.environ.get("STEREOREG_RANSAC_DEBUG", "0") == "1":
        return logging.DEBUG
    return logging.INFO


def setup_logger(name: str = "stereoreg",
                 level: Optional[int] = None,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (the package logger "stereoreg" covers all modules)
        level: Logging level (default: INFO, or DEBUG if STEREOREG_RANSAC_DEBUG=1)
        log_file: Optional log file path. If provided, logs will also be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    if level is None:
        level = _default_level()
    logger.setLevel(level)

    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger
