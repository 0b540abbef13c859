"""
Logging setup - stdlib logging configuration for the gateway process.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Install a single stream handler on the root logger.

    Safe to call more than once; existing handlers are replaced so
    reloads do not duplicate output.
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # httpx logs every request at INFO, including URLs with query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)
