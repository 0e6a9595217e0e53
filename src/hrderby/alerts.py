"""Outbound operator alerts."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class AlertSink(Protocol):
    def notify(self, severity: str, message: str, context: Mapping[str, Any]) -> None:
        ...


class LoggingAlertSink:
    """Write alerts to a dedicated logger so any handler can forward them."""

    def __init__(self, logger_name: str = "hrderby.alerts"):
        self._logger = logging.getLogger(logger_name)

    def notify(self, severity: str, message: str, context: Mapping[str, Any]) -> None:
        level = _LEVELS.get(severity.lower(), logging.ERROR)
        self._logger.log(level, "%s %s", message, json.dumps(dict(context), default=str, sort_keys=True))
