import logging
from typing import Optional

LOGGER_NAME = "jsonhttp"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return the package logger, or a child of it when ``name`` is given.

    A NullHandler keeps the library silent until the application configures
    logging itself.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(h, logging.NullHandler) for h in logger.handlers):
        logger.addHandler(logging.NullHandler())
    if name:
        return logger.getChild(name)
    return logger
