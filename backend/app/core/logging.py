import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# per-request / per-heartbeat chatter of the HTTP and broker clients
NOISY_LOGGERS = ("urllib3", "kombu", "amqp", "celery.redirected")


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Root logger gets one stdout handler and LOG_LEVEL, so per-account sync and
    per-claim queue logs show up in uvicorn, Celery workers and beat alike.
    Safe to call more than once (uvicorn and Celery may have added handlers already).
    """
    resolved_level = (level or DEFAULT_LEVEL).upper()
    root_logger = logging.getLogger()

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
    root_logger.setLevel(resolved_level)

    if resolved_level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    return logging.getLogger("marketplace_sync")


logger = configure_logging()
