"""Logging setup for the genstruct command line."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

LOGGER_NAME = "genstruct"

LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

TEXT_FORMAT = "time=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"

_handler: logging.Handler | None = None
_format = "text"


class JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)


def init_logger(
    verbosity: str = "info",
    log_format: str = "text",
    log_output: str = "stderr",
) -> logging.Logger:
    """Configure the ``genstruct`` logger and return it.

    Args:
        verbosity: One of ``debug``, ``info``, ``warn`` or ``error``.
            Unknown values mean ``info``.
        log_format: ``text`` or ``json``.
        log_output: ``stderr``, ``stdout`` or a file path. A file that cannot
            be opened falls back to stderr.
    """
    global _handler, _format

    level = LEVELS.get(verbosity.lower(), logging.INFO)
    fallback_error: OSError | None = None

    if log_output == "stdout":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif log_output in ("", "stderr"):
        handler = logging.StreamHandler(sys.stderr)
    else:
        try:
            handler = logging.FileHandler(log_output, encoding="utf-8")
        except OSError as e:
            fallback_error = e
            handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(_formatter(log_format))

    log = logging.getLogger(LOGGER_NAME)
    if _handler is not None:
        log.removeHandler(_handler)
        _handler.close()
    log.addHandler(handler)
    log.setLevel(level)
    log.propagate = False

    _handler = handler
    _format = log_format

    if fallback_error is not None:
        log.warning("Could not open log file %s, logging to stderr: %s", log_output, fallback_error)
    return log


def get_logger() -> logging.Logger:
    """Return the ``genstruct`` logger, configuring defaults on first use."""
    if _handler is None:
        return init_logger()
    return logging.getLogger(LOGGER_NAME)


def with_level(level: int) -> logging.Logger:
    """Return a stderr logger at ``level`` in the configured format.

    One logger per level, a child of the ``genstruct`` logger that does not
    propagate to it.
    """
    if _handler is None:
        init_logger()
    log = logging.getLogger(f"{LOGGER_NAME}.level{level}")
    if log.handlers:
        handler = log.handlers[0]
        handler.setStream(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)
        log.addHandler(handler)
    handler.setFormatter(_formatter(_format))
    log.setLevel(level)
    log.propagate = False
    return log
