"""Loguru logging setup."""
import sys

from loguru import logger

LOG_FORMAT = (
    "<level>{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | "
    "{extra[module]} | {message}</level>"
)


def setup_logging(level: str | None = None) -> None:
    """Configure the loguru sink.

    Args:
        level: Log level; defaults to ``settings.log_level`` (``LOG_LEVEL``)
    """
    if level is None:
        from .config import settings
        level = settings.log_level

    logger.remove()
    logger.configure(extra={"module": "-"})
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level.upper(),
        colorize=True,
        backtrace=True,
        diagnose=False,
    )
