from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from logging import Logger

from config import get_log_level


class ContextFilter(logging.Filter):
    """Garantiza que record.context siempre exista."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = None
        return True


class JsonFormatter(logging.Formatter):
    """Un objeto JSON por línea: ts, level, module, msg y context opcional."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


@lru_cache(None)
def get_logger(name: str = "moonclock") -> Logger:
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, get_log_level(), logging.INFO))

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def log_debug(logger: Logger, msg: str, **context):
    logger.debug(msg, extra={"context": context})


def log_info(logger: Logger, msg: str, **context):
    logger.info(msg, extra={"context": context})


def log_warn(logger: Logger, msg: str, **context):
    logger.warning(msg, extra={"context": context})


def log_error(logger: Logger, msg: str, exc_info: bool = False, **context):
    logger.error(msg, exc_info=exc_info, extra={"context": context})
