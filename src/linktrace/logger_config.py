import logging
import sys
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'


def setup_logger(name: str = "linktrace",
                 level: Union[int, str] = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """Configure the package logger: stderr always, plus an optional log file.

    Calling it again replaces the handlers it installed earlier.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, '_linktrace_handler', False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    # stdout is reserved for the report
    console_handler = logging.StreamHandler(sys.stderr)
    handlers = [console_handler]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler._linktrace_handler = True
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
