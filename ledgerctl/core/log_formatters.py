"""Formatters, console handler and per-thread context for ledgerctl logs."""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from contextlib import contextmanager

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text
from rich.theme import Theme

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_EVENT_STYLES = {
    "lease": "ledgerctl.lease",
    "registry": "ledgerctl.registry",
    "event": "ledgerctl.event",
}

LEDGERCTL_THEME = Theme(
    {
        "logging.level.debug": "dim cyan",
        "logging.level.info": "dim blue",
        "logging.level.warning": "yellow",
        "logging.level.error": "red",
        "logging.level.critical": "bold red",
        "ledgerctl.scope": "bold magenta",
        "ledgerctl.event": "bright_green",
        "ledgerctl.lease": "bright_blue",
        "ledgerctl.registry": "bright_cyan",
    }
)


class LogContext:
    """Per-thread key/value pairs attached to every structured log line.

    Typical keys are the deployment scope and the command being run.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def _values(self) -> Dict[str, Any]:
        values = getattr(self._local, "values", None)
        if values is None:
            values = self._local.values = {}
        return values

    def set_context(self, **kwargs: Any) -> None:
        self._values().update(kwargs)

    def get_context(self) -> Dict[str, Any]:
        return dict(self._values())

    def clear_context(self) -> None:
        self._local.values = {}

    @contextmanager
    def context(self, **kwargs: Any):
        """Bind values for the duration of a block, then restore the outer ones."""
        outer = self.get_context()
        self.set_context(**kwargs)
        try:
            yield
        finally:
            self._local.values = outer


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_RECORD_ATTRS
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras and context."""

    def __init__(
        self,
        include_context: bool = True,
        context_getter: Optional[Callable[[], Dict[str, Any]]] = None,
    ) -> None:
        super().__init__()
        self.include_context = include_context
        self._context_getter = context_getter or dict

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        exc_type, exc_value, _ = record.exc_info or (None, None, None)
        if exc_type is not None:
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        fields = _extra_fields(record)
        if fields:
            entry["fields"] = fields

        context = self._context_getter() if self.include_context else None
        if context:
            entry["context"] = context

        return json.dumps(entry, default=str)


class LedgerRichHandler(RichHandler):
    """Console handler that prefixes the scope and colours lease and registry events."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if "console" not in kwargs:
            kwargs["console"] = Console(theme=LEDGERCTL_THEME, stderr=True)
        super().__init__(*args, **kwargs)

    def render_message(self, record: logging.LogRecord, message: str) -> Text:
        text = Text(message)
        style = _EVENT_STYLES.get(getattr(record, "event_type", None))
        if style:
            text.stylize(style)
        scope = getattr(record, "scope", None)
        if scope:
            text = Text.assemble((f"[{scope}] ", "ledgerctl.scope"), text)
        return text
