"""
LokSeva - Logging
==================
``get_logger(name)`` hands every module a named logger that writes to a
single shared stdout handler in the ``time | level | module | message``
format.

Level resolution:
  • ``settings.LOG_LEVEL`` when set
  • otherwise ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

``quiet_third_party()`` caps the chatty client libraries (HTTP, MongoDB,
LanceDB, Gemini SDK) at WARNING so request logs stay readable in dev.

Usage:
    from lokseva.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[CHAT] Retrieved %d agencies", 5)
"""

import logging
import sys

from lokseva.config.settings import settings

_ENV_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}
_NOISY_LIBRARIES = ("httpx", "httpcore", "pymongo", "lancedb", "google_genai", "urllib3")

_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(logging.Formatter(fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))


def resolve_level(env: str | None = None, override: str | None = None) -> int:
    """Numeric log level for *env*, unless *override* names one explicitly."""
    if override:
        return logging.getLevelName(override.upper())
    return _ENV_LEVELS.get(env or settings.ENV, logging.INFO)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the logger *name*, attached to the shared stdout handler.

    Repeated calls with the same name return the same, unchanged logger.
    """
    logger = logging.getLogger(name)
    if _handler not in logger.handlers:
        logger.setLevel(level if level is not None else resolve_level(override=settings.LOG_LEVEL))
        logger.addHandler(_handler)
        # Uvicorn configures the root logger; keep ours from printing twice.
        logger.propagate = False
    return logger


def quiet_third_party(level: int = logging.WARNING) -> None:
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(level)
