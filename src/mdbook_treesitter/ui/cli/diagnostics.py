"""Diagnostic emitter bridging the core pipeline with CLI rendering utilities."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

from mdbook_treesitter.core.diagnostics import DiagnosticEmitter, format_event_message

from .state import CLIState, emit_error, emit_warning, get_cli_state


logger = logging.getLogger(__name__)


class CliEmitter(DiagnosticEmitter):
    """Emit diagnostics using the rich-enabled CLI helpers."""

    def __init__(self, state: CLIState | None = None, *, debug_enabled: bool | None = None) -> None:
        self._state = state or get_cli_state()
        if debug_enabled is None:
            debug_enabled = self._state.show_tracebacks
        self.debug_enabled = bool(debug_enabled)

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        emit_warning(message, exception=exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        emit_error(message, exception=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            logger.debug(message)


__all__ = ["CliEmitter"]
