"""
Logging utilities for the PlanHaus application.
"""
import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name, level=logging.INFO):
    """
    Create and configure a logger with the given name.

    Args:
        name (str): The name for the logger.
        level (int): Minimum level emitted by the console handler.

    Returns:
        logging.Logger: Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Modules import get_logger at load time; only attach one stdout handler
    if not any(getattr(h, '_planhaus_handler', False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._planhaus_handler = True
        logger.addHandler(handler)

    return logger
