# catevents/utils/logger.py
"""
Logging setup for the ingestion service.
One console handler plus a size-rotated `ingest.log` under LOG_DIR, shared by
every module through the root logger. Configuration happens on first use.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from catevents.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "ingest.log"

# Chatty at DEBUG when multipart bodies or every access line are logged
QUIET_LOGGERS = ("multipart", "python_multipart", "uvicorn.access")

_configured = False


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Attach the console and file handlers once. Later calls are no-ops."""
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or settings.LOG_LEVEL).upper()
    log_dir = log_dir or settings.LOG_DIR
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        os.makedirs(log_dir, exist_ok=True)
        # 10 files × 5MB
        handlers.append(RotatingFileHandler(
            filename=os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=5 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        ))
    except OSError as e:
        logging.getLogger(__name__).warning(f"File logging disabled, cannot write to {log_dir}: {e}")

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.INFO, root.level))


def get_logger(name: str) -> logging.Logger:
    """Named logger for a module, configuring handlers on first call."""
    configure_logging()
    return logging.getLogger(name)
