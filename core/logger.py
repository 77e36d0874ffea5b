# core/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

_configured = False

DATA_DIR = os.path.expanduser(os.getenv("CATCHER_DATA_DIR", "~/.catcher"))
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# HTTP stack loggers that flood DEBUG output with connection chatter
QUIET_LOGGERS = ("urllib3", "requests")


def _file_handler(log_file: str, max_bytes: int, backups: int) -> Optional[logging.Handler]:
    """Rotating file handler, or None when the log location isn't writable."""
    try:
        folder = os.path.dirname(log_file)
        if folder:
            os.makedirs(folder, exist_ok=True)
        return RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backups)
    except OSError as e:
        sys.stderr.write(f"File logging disabled, cannot use {log_file}: {e}\n")
        return None


def build_handlers(
    to_stdout: bool,
    to_file: bool,
    log_file: str,
    max_bytes: int = 1024 * 1024,
    backups: int = 2,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if to_stdout:
        handlers.append(logging.StreamHandler(sys.stdout))
    if to_file:
        fh = _file_handler(log_file, max_bytes, backups)
        if fh is not None:
            handlers.append(fh)
    if not handlers:
        # payment and alert messages must land somewhere
        handlers.append(logging.StreamHandler(sys.stderr))
    return handlers


def setup_logging():
    global _configured
    if _configured:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_to_file = os.getenv("LOG_TO_FILE", "false").lower() == "true"
    log_file = os.getenv("LOG_FILE", os.path.join(DATA_DIR, "catcher.log"))
    log_max_bytes = int(os.getenv("LOG_MAX_BYTES", str(1024 * 1024)))
    log_backups = int(os.getenv("LOG_BACKUPS", "2"))
    log_to_stdout = os.getenv("LOG_TO_STDOUT", "true").lower() == "true"

    level = getattr(logging, log_level, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate handlers
    if not root.handlers:
        formatter = logging.Formatter(LOG_FORMAT)
        for handler in build_handlers(log_to_stdout, log_to_file, log_file, log_max_bytes, log_backups):
            handler.setLevel(level)
            handler.setFormatter(formatter)
            root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
