"""Shared CLI state management utilities."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
import sys
from typing import TYPE_CHECKING

import click
import typer

from mdbook_treesitter.core.exceptions import exception_messages


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "debug_enabled",
    "emit_error",
    "emit_fatal",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]


@dataclass(slots=True)
class CLIState:
    """Shared state controlling CLI diagnostics."""

    verbosity: int = 0
    show_tracebacks: bool = False
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def err_console(self) -> Console:
        """Return a lazily instantiated stderr console."""
        from rich.console import Console

        current = getattr(self._err_console, "file", None)
        if self._err_console is None or current is not sys.stderr:
            self._err_console = Console(file=sys.stderr, highlight=False)
        return self._err_console


_STATE_VAR: ContextVar[CLIState | None] = ContextVar("mdbook_treesitter_cli_state", default=None)


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the CLI state associated with the active Typer context."""
    if ctx is None:
        ctx = click.get_current_context(silent=True)

    state: CLIState | None = None
    if ctx is not None:
        current_ctx: click.Context | None = ctx
        while current_ctx is not None:
            if isinstance(current_ctx.obj, CLIState):
                state = current_ctx.obj
                break
            current_ctx = current_ctx.parent
        if state is None and create:
            state = CLIState()
            ctx.obj = state
        if state is not None:
            _STATE_VAR.set(state)

    if state is None:
        fallback = _STATE_VAR.get(None)
        if fallback is None:
            if not create:
                raise RuntimeError("CLI state is not initialised for this context.")
            fallback = CLIState()
            _STATE_VAR.set(fallback)
        state = fallback

    return state


def set_cli_state(
    *,
    ctx: typer.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
) -> CLIState:
    """Update the CLI state, returning the current instance."""
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    return state


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Render a formatted message on stderr, including optional diagnostics."""
    from rich.text import Text

    state = get_cli_state()
    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))

    extra_lines: list[str] = []
    if exception is not None and state.verbosity >= 1:
        extra_lines.append(f"type: {type(exception).__name__}")
        chain = exception_messages(exception)[1:]
        if chain:
            extra_lines.append("caused by:")
            extra_lines.extend(f"  {entry}" for entry in chain)
    if extra_lines:
        text.append("\n")
        text.append("\n".join(extra_lines), style=style)

    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    """Log a warning-level message to stderr respecting verbosity settings."""
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    """Log an error-level message to stderr respecting verbosity settings."""
    render_message("error", message, exception=exception)


def emit_fatal(exception: BaseException) -> None:
    """Report a run-aborting error together with its full causal chain."""
    state = get_cli_state()
    console = state.err_console
    if state.show_tracebacks:
        from rich.traceback import Traceback

        console.print(
            Traceback.from_exception(
                type(exception),
                exception,
                exception.__traceback__,
                show_locals=state.verbosity >= 2,
            )
        )
        return

    console.print(f"Fatal error: {exception}", style="bold red", markup=False)
    for message in exception_messages(exception):
        console.print(f"  - {message}", style="red", markup=False)


def debug_enabled() -> bool:
    """Return whether full tracebacks should be displayed."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False
