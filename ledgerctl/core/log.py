"""Structured logging system with JSON output and rich terminal formatting."""

import logging
from typing import Any, Dict, Optional, Protocol

from .logger_factory import IsolatedLogManager


class Logger(Protocol):
    """What lease, registry and store code needs from a logger; tests pass Mocks."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None: ...


class LogManager:
    """Process-wide logging under the ``ledgerctl`` namespace, configured once.

    The first ``configure`` call wins (the CLI callback and the application
    context both try); ``shutdown`` drops the handlers and allows a new one.
    Loggers of an embedding application, and the root logger, are never touched.
    """

    def __init__(self) -> None:
        self._manager = IsolatedLogManager("ledgerctl")

    def configure(self, **kwargs: Any) -> None:
        if not self._manager.is_configured:
            self._manager.configure(**kwargs)

    @property
    def is_configured(self) -> bool:
        return self._manager.is_configured

    @property
    def manager(self) -> IsolatedLogManager:
        return self._manager

    def get_logger(self, name: str) -> logging.Logger:
        return self._manager.create_logger(name)

    def shutdown(self) -> None:
        self._manager.shutdown()


_log_manager = LogManager()


def configure_logging(**kwargs: Any) -> None:
    """Configure the global logging system."""
    _log_manager.configure(**kwargs)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return _log_manager.get_logger(name)


def shutdown_logging() -> None:
    """Shutdown the logging system."""
    _log_manager.shutdown()


def log_event(
    logger: Logger, event_type: str, message: str, **kwargs: Any
) -> None:
    """Log a structured event with context."""
    logger.info(message, extra={"event_type": event_type, **kwargs})


def log_lease_event(
    logger: Logger,
    event: str,
    scope: str,
    holder: Optional[Any] = None,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a lease-related event (acquired, renewed, released, reclaimed...)."""
    extra: Dict[str, Any] = {
        "event_type": "lease",
        "lease_event": event,
        "scope": scope,
    }
    if holder is not None:
        extra["holder"] = str(holder)
    extra.update(kwargs)
    logger.log(level, "Lease %s %s by %s", scope, event, holder, extra=extra)


def log_registry_event(
    logger: Logger,
    event: str,
    scope: str,
    version: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """Log a registry-related event."""
    extra: Dict[str, Any] = {
        "event_type": "registry",
        "registry_event": event,
        "scope": scope,
    }
    if version is not None:
        extra["version"] = version
    extra.update(kwargs)
    logger.info("Registry %s %s (version %s)", scope, event, version, extra=extra)


def log_context(**kwargs: Any) -> Any:
    """Context manager for temporary logging context."""
    return _log_manager.manager.context(**kwargs)
