"""Namespaced log managers whose loggers never touch the root logger."""

import logging
import threading
from typing import Dict, Iterator, List, Optional, Union
from pathlib import Path
from contextlib import contextmanager

from .log_formatters import StructuredFormatter, LedgerRichHandler, LogContext

Level = Union[int, str]


class IsolatedLogManager:
    """Owns the handlers and context of every logger created under one namespace.

    Loggers may be created before ``configure`` runs (module-level loggers are);
    handlers are attached to them retroactively.
    """

    def __init__(self, namespace: str = "") -> None:
        self._namespace = namespace
        self._configured = False
        self._json_handler: Optional[logging.Handler] = None
        self._console_handler: Optional[logging.Handler] = None
        self._loggers: Dict[str, logging.Logger] = {}
        self._context = LogContext()
        self._lock = threading.RLock()

    @property
    def is_configured(self) -> bool:
        return self._configured

    @property
    def _handlers(self) -> List[logging.Handler]:
        return [h for h in (self._json_handler, self._console_handler) if h is not None]

    def configure(
        self,
        level: Level = logging.INFO,
        log_file: Optional[Path] = None,
        enable_json: bool = True,
        enable_console: bool = True,
        console_level: Optional[Level] = None,
    ) -> None:
        """Replace any previous handlers with a JSON file handler and/or a console handler."""
        with self._lock:
            self._clear_configuration()

            if enable_json and log_file:
                self._json_handler = self._build_json_handler(Path(log_file), level)
            if enable_console:
                self._console_handler = self._build_console_handler(console_level or level)

            for logger in self._loggers.values():
                self._attach_handlers(logger)
            self._configured = True

    def _build_json_handler(self, log_file: Path, level: Level) -> logging.Handler:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
        handler.setFormatter(StructuredFormatter(context_getter=self._context.get_context))
        handler.setLevel(level)
        return handler

    @staticmethod
    def _build_console_handler(level: Level) -> logging.Handler:
        handler = LedgerRichHandler(show_time=True, show_path=False, markup=False)
        handler.setLevel(level)
        return handler

    def create_logger(self, name: str) -> logging.Logger:
        """Return the cached logger ``<namespace>.<name>``, creating it on first use.

        Names already inside the namespace (module ``__name__`` values) are kept.
        """
        ns = self._namespace
        if not ns or name == ns or name.startswith(ns + "."):
            full_name = name
        else:
            full_name = f"{ns}.{name}"
        with self._lock:
            logger = self._loggers.get(full_name)
            if logger is None:
                logger = logging.getLogger(full_name)
                logger.propagate = False
                logger.setLevel(logging.DEBUG)
                self._attach_handlers(logger)
                self._loggers[full_name] = logger
            return logger

    def _attach_handlers(self, logger: logging.Logger) -> None:
        for handler in self._handlers:
            if handler not in logger.handlers:
                logger.addHandler(handler)

    @contextmanager
    def context(self, **kwargs) -> Iterator[None]:
        """Attach ``kwargs`` to every JSON line written inside the block."""
        with self._context.context(**kwargs):
            yield

    def shutdown(self) -> None:
        with self._lock:
            self._clear_configuration()
            self._context.clear_context()

    def _clear_configuration(self) -> None:
        handlers = self._handlers
        for logger in self._loggers.values():
            for handler in handlers:
                logger.removeHandler(handler)
        for handler in handlers:
            try:
                handler.close()
            except (OSError, RuntimeError):
                pass
        self._json_handler = None
        self._console_handler = None
        self._configured = False
