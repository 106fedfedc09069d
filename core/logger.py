import logging
import sys
from pythonjsonlogger import jsonlogger

from core.config import settings

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(threadName)s %(message)s'
# Field names as they appear in the JSON records
RENAMED_FIELDS = {"asctime": "timestamp", "levelname": "level", "threadName": "thread"}


def build_formatter() -> jsonlogger.JsonFormatter:
    return jsonlogger.JsonFormatter(LOG_FORMAT, rename_fields=RENAMED_FIELDS)


def get_logger(name: str, level: str = None):
    """
    Returns a logger writing one JSON object per record to stdout.

    Stores are hit from FastAPI's worker threads, so every record carries the
    thread name. The level defaults to the LOG_LEVEL setting.
    """
    logger = logging.getLogger(name)

    # Loggers are module-level singletons; configure each one once
    if logger.handlers:
        return logger

    logger.setLevel((level or settings.LOG_LEVEL).upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter())
    logger.addHandler(handler)

    return logger
