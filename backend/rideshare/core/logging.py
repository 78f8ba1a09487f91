"""
Logging setup for the application.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the `rideshare` logger tree.

    Installs a console handler and, when `log_file` is given, a rotating file
    handler (5MB x 5). Calling it again only updates the level.
    """
    logger = logging.getLogger("rideshare")
    logger.setLevel(level.upper())

    # avoid adding multiple handlers if called multiple times
    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

        if log_file:
            directory = os.path.dirname(os.path.abspath(log_file))
            os.makedirs(directory, exist_ok=True)
            handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    return logger
