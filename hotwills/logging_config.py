"""Logging setup for hotwills.

Two log streams live under ``{data_dir}/logs``:

- ``local-YYYY-MM-DD.log`` receives everything logged below the
  ``hotwills`` logger once :func:`setup_hotwills_logging` has run.
- ``sync-events-YYYY-MM-DD.log`` is an append-only audit trail of
  remote mutations (saves, uploads, blob cleanup), one line per event.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from hotwills.utils import get_hotwills_home

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _log_dir(data_dir: Optional[Path] = None) -> Path:
    base = Path(data_dir).expanduser() if data_dir else get_hotwills_home()
    return base / "logs"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_hotwills_logging(level: str = "INFO", data_dir: Optional[Path] = None) -> logging.Logger:
    """Configure the ``hotwills`` logger with a dated file handler.

    A console handler is added only at DEBUG. Calling this again does not
    stack extra handlers.
    """
    level_name = (level or "INFO").upper()
    if level_name not in _VALID_LEVELS:
        level_name = "INFO"

    logger = logging.getLogger("hotwills")
    logger.setLevel(getattr(logging, level_name))

    if logger.handlers:
        return logger

    log_dir = _log_dir(data_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(log_dir / f"local-{_today()}.log", encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if level_name == "DEBUG":
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger


def log_sync_event(
    event_type: str, details: str, owner: Optional[str] = None, data_dir: Optional[Path] = None
) -> None:
    """Append one line to the sync event log.

    The audit trail is best effort: an unwritable log directory is reported
    on the ``hotwills`` logger and never fails the operation being logged.
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    line = f"{timestamp} | {event_type} | owner={owner or 'anonymous'} | {details}\n"
    try:
        log_dir = _log_dir(data_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        with open(log_dir / f"sync-events-{_today()}.log", "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        logging.getLogger("hotwills").warning(f"Could not write sync event log: {e}")


def log_save(
    owner: str,
    saved: int,
    final: Optional[int],
    ok: bool,
    error: Optional[str] = None,
    data_dir: Optional[Path] = None,
) -> None:
    details = f"saved={saved}, final={final}, ok={ok}"
    if error:
        details += f", error={error[:200]}"
    log_sync_event("save", details, owner=owner, data_dir=data_dir)


def log_cleanup(owner: str, removed: int, data_dir: Optional[Path] = None) -> None:
    log_sync_event("cleanup", f"removed={removed}", owner=owner, data_dir=data_dir)


def log_upload(owner: str, path: str, source: str, data_dir: Optional[Path] = None) -> None:
    log_sync_event("upload", f"path={path}, source={source}", owner=owner, data_dir=data_dir)
