import logging
from logging import Logger
from typing import Optional

from reportgen.config import Settings, settings as default_settings

LOGGER_NAME = "reportgen"


def configure_logging(settings: Optional[Settings] = None) -> Logger:
    """Attach a single stream handler to the package logger."""
    settings = settings or default_settings

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level.upper())
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(levelname)s] %(asctime)s | %(name)s | %(message)s")
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False

    return logger
