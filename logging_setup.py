import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_installed = []


def setup_logger(log_file: str = "logs/habits.log", level: str = "INFO",
                 max_bytes: int = 1_000_000, backup_count: int = 3):
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    formatter = logging.Formatter(FORMAT)

    # calling twice replaces the handlers instead of stacking them
    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        Path(log_file).parent.mkdir(exist_ok=True, parents=True)
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        _installed.append(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(logging.WARNING)
    logger.addHandler(console)
    _installed.append(console)
    return logger
