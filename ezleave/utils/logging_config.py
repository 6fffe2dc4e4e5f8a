"""
Logging setup: console plus rotating files under LOG_DIR.

    logs/app.log      everything at LOG_LEVEL
    logs/actions.log  only the ezleave.actions logger (who did what)
"""
import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

LOG_DIR = Path(os.getenv("LOG_DIR", Path(__file__).resolve().parent.parent.parent / "logs"))
LOG_FILE = LOG_DIR / "app.log"
ACTIONS_LOG_FILE = LOG_DIR / "actions.log"
MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", 5 * 1024 * 1024))
BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", 5))

FORMAT_CONSOLE = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
FORMAT_FILE = "%(asctime)s | %(levelname)-7s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
FORMAT_ACTIONS = "%(asctime)s | %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "passlib": logging.ERROR,
}


def _rotating_handler(path: Path, level: int, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FMT))
    return handler


def setup_logging(level: str = "INFO", log_to_file: bool = True) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    level_value = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level_value)

    if root.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level_value)
    console.setFormatter(logging.Formatter(FORMAT_CONSOLE, datefmt=DATE_FMT))
    root.addHandler(console)

    if log_to_file:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            root.addHandler(_rotating_handler(LOG_FILE, level_value, FORMAT_FILE))
            logging.getLogger("ezleave.actions").addHandler(
                _rotating_handler(ACTIONS_LOG_FILE, logging.INFO, FORMAT_ACTIONS)
            )
        except OSError:
            root.warning("Could not create log files in %s; file logging disabled", LOG_DIR)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
