"""Root logger setup for ``geostats-ingest`` runs.

Every run writes its own DEBUG log under ``{data_dir}/logs/`` while the
console shows ``console_level`` and up (``--verbose`` lowers it to DEBUG).
"""

import logging
from datetime import datetime
from pathlib import Path

LOG_PREFIX = "geostats-ingest"
CONSOLE_FORMAT = "%(asctime)s %(levelname)-5s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"

# Chatty libraries, kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore")


def _handler(
    handler: logging.Handler, level: int, fmt: str, datefmt: str | None = None
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def log_path(data_dir: str | Path, now: datetime | None = None) -> Path:
    """``data/logs/geostats-ingest-2024-05-01-120000.log``"""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d-%H%M%S")
    return Path(data_dir) / "logs" / f"{LOG_PREFIX}-{stamp}.log"


def setup_logging(
    data_dir: str = "data", console_level: int = logging.INFO
) -> Path:
    """Replace the root logger's handlers and return the new log file."""
    log_file = log_path(data_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()

    root.addHandler(
        _handler(logging.StreamHandler(), console_level, CONSOLE_FORMAT, "%H:%M:%S")
    )
    root.addHandler(
        _handler(
            logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT
        )
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
