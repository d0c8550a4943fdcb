"""
Centralized logging configuration for axiom-jobs.
Initializes loguru and intercepts standard library logging.

Logs go to stderr; stdout is reserved for command output and artifact bytes.
"""

import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """
    Default handler from documents for intercepting standard library logging messages.
    See: https://loguru.readthedocs.io/en/stable/overview.html#entirely-compatible-with-standard-logging
    """

    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", sink=sys.stderr):
    """
    Configures loguru to handle all logs and output them to `sink`.

    Args:
        level: Minimum level to emit.
        sink: Where log lines go. Defaults to stderr.
    """
    logger.remove()

    logger.add(
        sink,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level.upper(),
        colorize=getattr(sink, "isatty", lambda: False)(),
    )

    # Intercept standard library logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # httpx logs every request at INFO; only surface its warnings
    for name in ["httpx", "httpcore"]:
        _logger = logging.getLogger(name)
        _logger.handlers = [InterceptHandler()]
        _logger.propagate = False
        _logger.setLevel(logging.WARNING)

    logger.debug(f"Logging initialized at {level.upper()}")
