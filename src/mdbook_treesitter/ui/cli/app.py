"""Typer application wiring for the ``mdbook-treesitter`` preprocessor."""

from __future__ import annotations

import json
import sys
from typing import Annotated

import typer

from mdbook_treesitter.core.book import (
    SUPPORTED_MDBOOK_SERIES,
    parse_input,
    run_preprocessor,
    supports_renderer,
)
from mdbook_treesitter.core.exceptions import HighlightError
from mdbook_treesitter.version import get_version

from .diagnostics import CliEmitter
from .logging import init_logging
from .state import debug_enabled, emit_error, emit_fatal, set_cli_state


DIAGNOSTICS_PANEL = "Diagnostics"

app = typer.Typer(
    help="mdbook preprocessor that highlights code blocks with tree-sitter grammars.",
    context_settings={"help_option_names": ["--help"]},
    invoke_without_command=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def preprocess(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase diagnostics. Combine multiple times for additional detail.",
            rich_help_panel=DIAGNOSTICS_PANEL,
        ),
    ] = 0,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Show full tracebacks when a fatal error occurs.",
            rich_help_panel=DIAGNOSTICS_PANEL,
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Print the version and exit.",
        ),
    ] = False,
) -> None:
    """Read ``[context, book]`` from stdin and write the highlighted book to stdout."""
    state = set_cli_state(ctx=ctx, verbosity=verbose, debug=debug)
    init_logging(state.verbosity)
    if ctx.invoked_subcommand is not None:
        return

    try:
        handle_preprocessing()
    except HighlightError as exc:
        emit_fatal(exc)
        raise typer.Exit(code=1) from exc


@app.command()
def supports(
    renderer: Annotated[str, typer.Argument(help="Name of the mdbook renderer.")],
) -> None:
    """Check whether a renderer is supported by this preprocessor."""
    raise typer.Exit(code=0 if supports_renderer(renderer) else 1)


def handle_preprocessing() -> None:
    context, book = parse_input(sys.stdin)

    if not context.is_supported_version():
        typer.echo(
            "Warning: The mdbook-treesitter preprocessor was built against version "
            f"{SUPPORTED_MDBOOK_SERIES} of mdbook, but we're being called from version "
            f"{context.mdbook_version}",
            err=True,
        )

    processed = run_preprocessor(context, book, emitter=CliEmitter())
    json.dump(processed, sys.stdout)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "handle_preprocessing", "main"]
