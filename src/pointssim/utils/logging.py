"""
Logging Utilities

This module sets up logging for the project and provides a small timing
helper used to report the duration of the expensive pipeline stages.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional
from contextlib import contextmanager


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(processName)s[%(process)d] | %(name)s | %(message)s',
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
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


@contextmanager
def log_duration(logger: logging.Logger, label: str, level: int = logging.DEBUG):
    """
    Context manager that logs how long the enclosed block took.

    Args:
        logger: Target logger
        label: Short description of the timed stage
        level: Logging level to use (default: DEBUG)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s took %.3fs", label, time.perf_counter() - start)
