from __future__ import annotations

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from .errors import ConfigError

LOG_FORMATS = ("json", "text")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
JSON_FIELDS = "%(asctime)s %(name)s %(levelname)s %(message)s"


def formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JsonFormatter(JSON_FIELDS, rename_fields={"levelname": "level", "asctime": "time"})
    if fmt == "text":
        return logging.Formatter(TEXT_FORMAT)
    raise ConfigError(f"unknown log format {fmt!r}, expected json|text")


def configure_logging(level: str, fmt: str = "json") -> None:
    """Route every logger (uvicorn's included) to stderr in the chosen format."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter(fmt))
    logging.basicConfig(level=level.upper(), handlers=[handler])
