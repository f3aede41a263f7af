import sys
from typing import Optional

from loguru import logger
from config import get_config

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Install the application sink, replacing loguru's default handler.

    Re-running with the same level is a no-op; a different level re-installs the sink.
    """
    global _configured_level
    level = (level or get_config().log_level).upper()
    if level == _configured_level:
        return
    logger.remove()
    logger.configure(extra={"name": "app"})
    logger.add(sink=sys.stderr, level=level, format=_FORMAT)
    _configured_level = level


def get_logger(name: Optional[str] = None):
    """Get the application logger, bound to ``name`` when given."""
    configure_logging()
    if name:
        return logger.bind(name=name)
    return logger
