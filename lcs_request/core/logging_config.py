# lcs_request/core/logging_config.py
"""Logging setup: console plus a rotating log file"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from lcs_request.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

# Chatty libraries only report warnings and up
QUIET_LOGGERS = ("uvicorn.access", "redis", "httpx", "slowapi")


def _file_handler_for(root: logging.Logger, path: Path):
    target = str(path.resolve())
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == target:
            return handler
    return None


def setup_logging(level: str = None, log_dir: str = None) -> logging.Logger:
    """
    Configure the root logger once per process.

    Repeated calls (reloads, tests importing the app) do not stack handlers.
    """
    level = (level or settings.LOG_LEVEL).upper()
    directory = Path(log_dir or settings.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    has_console = any(
        type(handler) is logging.StreamHandler for handler in root.handlers
    )
    if not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    log_file = directory / "lcs_request.log"
    if _file_handler_for(root, log_file) is None:
        rotating = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUPS,
            encoding='utf-8'
        )
        rotating.setFormatter(formatter)
        root.addHandler(rotating)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
