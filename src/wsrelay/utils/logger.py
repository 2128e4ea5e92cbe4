"""
Logging setup for wsrelay.

All modules obtain their logger through get_logger(); configure_logging()
installs the single stderr sink and routes stdlib logging (uvicorn,
websockets) into loguru.
"""

import inspect
import logging
import sys

from loguru import logger as _logger

from wsrelay.models.enums import LogLevel

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_LOGURU_LEVELS = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_logger.configure(extra={"name": "wsrelay"})


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside of the logging module
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        _logger.bind(name=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def configure_logging(level: LogLevel = LogLevel.INFO) -> None:
    """
    Configure loguru sinks and intercept stdlib logging.

    Must be called before uvicorn.run so uvicorn's loggers are captured.

    Args:
        level: Verbosity level for all wsrelay components.
    """
    loguru_level = _LOGURU_LEVELS.get(level, "INFO")

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=loguru_level,
        format=LOG_FORMAT,
        backtrace=level == LogLevel.FULL,
        diagnose=level == LogLevel.FULL,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "websockets"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


def get_logger(name: str):
    """Get a logger bound to a module name."""
    return _logger.bind(name=name)
