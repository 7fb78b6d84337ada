# app_logger.py
"""
A small wrapper around the standard library `logging` module.
All parts of the program import `logger` from here, so we have a single
source of truth for log configuration.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

logger = logging.getLogger("BtleExporter")   # use a dedicated namespace
logger.setLevel(logging.INFO)
logger.propagate = False               # keep bleak's own logging separate

formatter = logging.Formatter(LOG_FORMAT)

# ----------------------------------------------------------------------
# Console handler – always present
# ----------------------------------------------------------------------
console_handler = logging.StreamHandler(sys.stderr)
console_handler.setFormatter(formatter)
logger.addHandler(console_handler)


def configure_logging(debug: bool = False,
                      log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Adjust the level and optionally also write to *log_file*.

    Called once from ``main`` after the command line has been parsed.
    """
    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)
    console_handler.setLevel(level)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)      # capture everything
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def log_debug(msg: str, *args, **kwargs) -> None:
    """Shortcut for `logger.debug(msg, *args, **kwargs)`."""
    logger.debug(msg, *args, **kwargs)
