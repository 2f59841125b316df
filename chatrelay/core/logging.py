# chatrelay/core/logging.py

import logging
import sys

from chatrelay.core.config import settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers that chatter at INFO/DEBUG during normal relay traffic
NOISY_LOGGERS = ("multipart", "python_multipart", "websockets", "httpx")


def setup_logging() -> None:
    """
    Configure logging for the relay process.

    Level comes from settings.LOG_LEVEL. Under Uvicorn the root logger
    already has handlers, so only the level is applied; otherwise one stdout
    handler is installed. Connection lifecycle and joins log at INFO,
    dropped protocol events at DEBUG, failed socket writes at WARNING.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Per-request access lines add nothing next to the websocket lifecycle logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> logging.Logger:
    """Module logger for chatrelay code, e.g. get_logger(__name__)."""
    return logging.getLogger(name)
