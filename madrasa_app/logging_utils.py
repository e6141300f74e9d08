# madrasa_app/logging_utils.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any, Dict

_RESERVED = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


class JSONFormatter(logging.Formatter):
    """
    Render log records as JSON lines; anything passed through ``extra=``
    (order id, provider, result...) lands under ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, self.datefmt),
        }
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)

        extras = {k: v for k, v in record.__dict__.items() if k not in _RESERVED}
        if extras:
            data["context"] = extras
        return json.dumps(data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_lines: bool = True) -> None:
    """
    Configure root logging. Safe to call more than once (dictConfig replaces
    the previous handlers).
    """
    formatter: Dict[str, Any]
    if json_lines:
        formatter = {"()": "madrasa_app.logging_utils.JSONFormatter", "datefmt": "%Y-%m-%dT%H:%M:%S%z"}
    else:
        formatter = {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"}

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
            }
        },
        "root": {"handlers": ["default"], "level": level},
    }
    dictConfig(config)
