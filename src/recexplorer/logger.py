"""
Logging configuration for recexplorer

Logs always go to stderr so ``--json`` output on stdout stays parseable.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# Fan-out workers interleave; the thread name tells their lines apart
DEBUG_LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

HTTP_LOGGERS = ("requests", "urllib3")


def log_format(numeric_level: int) -> str:
    """Pick the record format for a level; DEBUG adds the worker thread name."""
    return DEBUG_LOG_FORMAT if numeric_level <= logging.DEBUG else LOG_FORMAT


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """
    Configure logging for the application

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        verbose: Enable verbose logging (DEBUG level)
    """
    if verbose:
        level = "DEBUG"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=log_format(numeric_level),
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # One line per page request would bury the per-user failure warnings
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
