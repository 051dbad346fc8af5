"""Public CLI exports for mdbook-treesitter."""

from __future__ import annotations

from .app import app, main
from .state import debug_enabled, emit_error, emit_fatal, emit_warning, get_cli_state


__all__ = [
    "app",
    "debug_enabled",
    "emit_error",
    "emit_fatal",
    "emit_warning",
    "get_cli_state",
    "main",
]
