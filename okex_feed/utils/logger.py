import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime
from typing import Optional

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S.%f'

class DotMsFormatter(logging.Formatter):
    """Formatter whose ``%f`` renders milliseconds (trade ticks need them)."""

    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        ms = int(record.msecs)
        if datefmt:
            return ct.strftime(datefmt.replace('%f', f'{ms:03d}'))
        return ct.strftime("%Y-%m-%d %H:%M:%S") + f".{ms:03d}"

def setup_logger(
    name: str,
    log_path: Optional[str | Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """Console logger plus an optional rotating file.

    Calling it again for the same name replaces the handlers instead of
    stacking duplicates.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = DotMsFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger
