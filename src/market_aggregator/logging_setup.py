from __future__ import annotations

import logging
from pathlib import Path

from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_HANDLER_MARKER = "_market_aggregator_handler"


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """
    Configure the root logger for processes embedding the aggregator.

    Safe to call more than once; handlers installed by a previous call are
    replaced rather than duplicated.
    """

    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root_logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    setattr(stream_handler, _HANDLER_MARKER, True)
    root_logger.addHandler(stream_handler)

    if settings.log_dir:
        log_path = Path(settings.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / "market_aggregator.log")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARKER, True)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger("aggregator")
    logger.debug("Logging configured at level %s", settings.log_level)
    return logger


__all__ = ["LOG_FORMAT", "configure_logging"]
