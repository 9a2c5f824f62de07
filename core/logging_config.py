"""Logging configuration for the wiki engine."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from core.time import utc_now_isoformat

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask


WIKI_LOGGER_NAME = "wiki"


class StructuredWikiLogger:
    """Helper for emitting structured JSON logs for wiki operations.

    The JSON payload becomes the log message while ``event`` and the raw
    fields are also attached to the record so handlers can filter on them.
    """

    def __init__(self, logger: logging.Logger, defaults: Optional[Mapping[str, Any]] = None):
        self._logger = logger
        self._defaults: Dict[str, Any] = dict(defaults or {})

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _emit(self, level: int, event: str, fields: Mapping[str, Any], exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        payload: Dict[str, Any] = dict(self._defaults)
        payload.update(fields)
        # ts / event / level are owned by the logger
        payload.update(
            ts=utc_now_isoformat(),
            event=event,
            level=logging.getLevelName(level),
        )
        message = json.dumps(payload, ensure_ascii=False, default=str)
        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={"event": event, "wiki_fields": payload},
        )

    def log(self, level: int, event: str, /, **fields: Any) -> None:
        """Emit a log entry at *level* with structured payload."""

        self._emit(level, event, fields)

    def debug(self, event: str, /, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, /, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, /, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, /, exc_info: bool = False, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields, exc_info=exc_info)


def structured_wiki_logger(component: str, /, **defaults: Any) -> StructuredWikiLogger:
    """Return a :class:`StructuredWikiLogger` below the ``wiki`` logger."""

    logger = logging.getLogger(f"{WIKI_LOGGER_NAME}.{component}")
    return StructuredWikiLogger(logger, {"component": component, **defaults})


def configure_logging(app: "Flask") -> logging.Logger:
    """Apply ``WIKI_LOG_LEVEL`` to the ``wiki`` logger hierarchy."""

    level_name = str(app.config.get("WIKI_LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(WIKI_LOGGER_NAME)
    logger.setLevel(level)
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logger.addHandler(handler)
    return logger


__all__ = [
    "StructuredWikiLogger",
    "WIKI_LOGGER_NAME",
    "configure_logging",
    "structured_wiki_logger",
]
