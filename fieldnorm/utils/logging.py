"""
Logging configuration for the field data normalizer.

Console output always goes to stderr: a parse run may stream its binary
output envelope to stdout. Chatty third-party loggers (rdflib, pyproj,
pyshp) are held at WARNING unless the pipeline itself runs at DEBUG.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

LOG_FORMAT = "%(name)s - %(levelname)s - %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

THIRD_PARTY_LOGGERS = ("rdflib", "pyproj", "shapefile")


def _formatter(include_timestamp: bool) -> logging.Formatter:
    if include_timestamp:
        return logging.Formatter("%(asctime)s - " + LOG_FORMAT, datefmt=TIMESTAMP_FORMAT)
    return logging.Formatter(LOG_FORMAT)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    include_timestamp: bool = True,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure the root logger for a pipeline run.

    Replaces any handlers already installed, so calling it twice does not
    duplicate output.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file receiving the same records as the console
        include_timestamp: Prefix each record with its time
        stream: Console stream, sys.stderr when omitted
    """
    numeric_level = getattr(logging, level.upper())
    formatter = _formatter(include_timestamp)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(max(library_level, numeric_level))


def get_logger(name: str) -> logging.Logger:
    """Logger for a pipeline module; pass ``__name__``."""
    return logging.getLogger(name)
