from __future__ import annotations

import json
import os
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from hedgeterminal.core.ops.events import StreamEventDiscarded

# high-volume events that carry nothing worth journaling
_SKIPPED_EVENTS = (StreamEventDiscarded,)


class JsonlEventLogger:
    """Appends every bus event to a JSON-lines journal."""

    def __init__(self, path: str, *, include_discards: bool = False) -> None:
        self._path = path
        self._include_discards = include_discards

    @property
    def path(self) -> str:
        return self._path

    def handle(self, event: object) -> None:
        if not self._include_discards and isinstance(event, _SKIPPED_EVENTS):
            return
        payload = {
            "event_type": type(event).__name__,
            "event": _serialize(event),
        }
        directory = os.path.dirname(self._path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload))
                handle.write("\n")
        except OSError as exc:
            logger.warning("Cannot write event journal {}: {}", self._path, exc)


def _serialize(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {field.name: _serialize(getattr(value, field.name)) for field in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return _format_datetime(value)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _serialize(val) for key, val in value.items()}
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


def _format_datetime(value: datetime) -> str:
    try:
        return value.isoformat(timespec="microseconds")
    except TypeError:
        return value.isoformat()
