"""Console and file logging for the command line tool."""
import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s %(levelname)-7s %(threadName)s %(name)s: %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route the 'beamsweep' logger to stderr and optionally to a file.

    Sweeps run on worker threads, so records carry the thread name.
    Calling this again replaces the handlers installed by the last call.

    Args:
        level: Threshold for the package logger and its handlers
        log_file: Path of a log file, truncated on open

    Returns:
        The package logger.
    """
    logger = logging.getLogger("beamsweep")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
