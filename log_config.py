import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def setup_logger(log_file: Optional[str] = "logs/scholar.log", level: int = logging.INFO,
                 max_bytes: int = 10_000_000, backup_count: int = 5) -> logging.Logger:
    """
    Configures the root logger: stdout always, plus a rotating file when ``log_file`` is set.
    Safe to call more than once (handlers are replaced, not stacked).
    """
    logger = logging.getLogger()
    logger.setLevel(level)
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(exist_ok=True, parents=True)
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
