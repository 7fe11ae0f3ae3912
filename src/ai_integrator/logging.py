"""Debug logging handle for ai-integrator.

The client owns one ``DebugLogger`` and shares it with its provider adapters;
toggling debug output is a method on that handle rather than process-wide
state. Records go through the standard ``ai_integrator`` logger, so
applications route them like any other library logs.

Usage:
    from ai_integrator.logging import DebugLogger, configure_logging

    configure_logging()  # optional: print records to stderr
    log = DebugLogger(enabled=True)
    log.info("Primary provider: %s", "openai")
    log.warn_once("functions", "'functions' is deprecated; use 'tools'")
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

LOG_TAG = "[AI-Integrator]"

logger = logging.getLogger("ai_integrator")
logger.addHandler(logging.NullHandler())

_HANDLER_MARKER = "_ai_integrator_console"


class DebugLogger:
    """Gated, tagged logger handle.

    Nothing is emitted while disabled. Structured fields passed as keyword
    arguments are attached to the record under ``extra["ai_integrator"]`` and
    appended to the message text.
    """

    def __init__(self, enabled: bool = False, *, target: logging.Logger | None = None) -> None:
        self._enabled = enabled
        self._logger = target or logger
        self._warned: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.DEBUG, msg, args, fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.INFO, msg, args, fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.WARNING, msg, args, fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self._emit(logging.ERROR, msg, args, fields)

    def warn_once(self, key: str, msg: str, *args: Any) -> bool:
        """Emit a warning the first time *key* is seen while enabled."""
        if not self._enabled or key in self._warned:
            return False
        self._warned.add(key)
        self._emit(logging.WARNING, msg, args, {})
        return True

    def _emit(
        self, level: int, msg: str, args: tuple[Any, ...], fields: dict[str, Any]
    ) -> None:
        if not self._enabled:
            return
        text = f"{LOG_TAG} {msg}"
        if fields:
            rendered = " ".join(f"{k}={v!r}" for k, v in fields.items())
            text = f"{text} ({rendered})"
        self._logger.log(level, text, *args, extra={"ai_integrator": fields})


def configure_logging(level: int = logging.DEBUG, stream: TextIO | None = None) -> None:
    """Attach a console handler to the ``ai_integrator`` logger (idempotent)."""
    logger.setLevel(level)
    for handler in logger.handlers:
        if getattr(handler, _HANDLER_MARKER, False):
            handler.setLevel(level)
            return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    setattr(handler, _HANDLER_MARKER, True)
    logger.addHandler(handler)
