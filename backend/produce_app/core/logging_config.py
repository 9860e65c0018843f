"""
Logging setup for the API process.

Console output is coloured by level; when LOG_TO_FILE is on, everything from
INFO goes to logs/produce_<date>.log and errors are copied to
logs/produce_errors_<date>.log.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler.executors.default")


class LevelColourFormatter(logging.Formatter):
    LEVEL_COLOURS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        colour = self.LEVEL_COLOURS.get(record.levelno)
        return f"{colour}{line}{self.RESET}" if colour else line


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """
    Configure the root logger. Pass log_dir to also write daily files.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(LevelColourFormatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y-%m-%d")
        root.addHandler(_file_handler(log_dir / f"produce_{today}.log", logging.INFO))
        root.addHandler(_file_handler(log_dir / f"produce_errors_{today}.log", logging.ERROR))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging at {log_level.upper()}" + (f", files in {log_dir}" if log_dir else "")
    )
