import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def create_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Create a named logger writing to stderr.

    Handlers are attached once per name, so repeated calls return the same
    configured logger.

    Args:
        name: Logger name
        level: Logging level name (DEBUG, INFO, ...). Defaults to INFO.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, (level or "INFO").upper()))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
