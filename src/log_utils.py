"""
Logging utilities for the Cloud SQL security manager.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    verbose: bool = False, log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: Enable verbose (DEBUG) logging
        log_file: Optional path to a log file

    Returns:
        Logger instance to hand to Connection
    """
    level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # urllib3 logs every connection at DEBUG, including tokeninfo query strings
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger("cloudsql_security")
