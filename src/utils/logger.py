import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str, level=None) -> logging.Logger:
    """
    Return a named logger writing to stderr.

    The handler is attached once per logger name so repeated imports do not
    duplicate output. ``level`` defaults to the configured LOG_LEVEL.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    if level is None:
        from src.utils.config import settings
        level = settings.LOG_LEVEL
    logger.setLevel(level)

    return logger


def set_level(level) -> None:
    """Change the level of every logger created through setup_logger."""
    for logger in logging.Logger.manager.loggerDict.values():
        if isinstance(logger, logging.Logger) and (logger.name.startswith("src.") or logger.name == "__main__"):
            logger.setLevel(level)
