from __future__ import annotations

import logging

import pytest

from mdbook_treesitter.core.diagnostics import (
    DiagnosticEmitter,
    LoggingEmitter,
    NullEmitter,
    format_event_message,
)
from mdbook_treesitter.core.exceptions import (
    CodeBlockError,
    CyclicInheritance,
    GrammarNotFound,
    HighlightError,
    UnmappedCapture,
    exception_hint,
    exception_messages,
)
from mdbook_treesitter.ui.cli.diagnostics import CliEmitter
from mdbook_treesitter.ui.cli.logging import LOG_ENV_VAR, init_logging, resolve_level
from mdbook_treesitter.ui.cli.state import emit_fatal, set_cli_state


def _raise_chained_error() -> None:
    try:
        try:
            raise GrammarNotFound("Error opening dynamic library 'treesitter/toml.so'")
        except GrammarNotFound as exc:
            raise CodeBlockError("toml", 12) from exc
    except CodeBlockError as exc:
        raise HighlightError("Failed to preprocess chapter 'Intro'") from exc


def test_null_emitter_is_noop(caplog: pytest.LogCaptureFixture) -> None:
    emitter = NullEmitter()
    with caplog.at_level(logging.WARNING):
        emitter.warning("nothing to see")
        emitter.error("still quiet")
    assert not caplog.records
    emitter.event("ignored", {"value": 1})
    assert emitter.debug_enabled is False
    assert isinstance(emitter, DiagnosticEmitter)


def test_logging_emitter_logs_messages(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter(debug_enabled=True)
    with caplog.at_level(logging.ERROR):
        emitter.error("boom")
    assert any(record.message == "boom" for record in caplog.records)
    assert emitter.debug_enabled is True


def test_logging_emitter_traceback_only_in_debug(caplog: pytest.LogCaptureFixture) -> None:
    error = GrammarNotFound("missing")
    with caplog.at_level(logging.WARNING):
        LoggingEmitter().warning("quiet", error)
        LoggingEmitter(debug_enabled=True).warning("loud", error)

    records = {record.message: record for record in caplog.records}
    assert records["quiet"].exc_info is None
    assert records["loud"].exc_info is not None


def test_logging_emitter_reports_events_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter()
    with caplog.at_level(logging.DEBUG, logger="mdbook_treesitter"):
        emitter.event("code_block", {"language": "rust"})
        emitter.event("custom", {"flag": True})

    messages = [record.message for record in caplog.records]
    assert "Code block with `rust` language detected" in messages
    assert "diagnostic event custom: {'flag': True}" in messages


@pytest.mark.parametrize(
    ("name", "payload", "expected"),
    [
        (
            "grammar_load",
            {"language": "rust", "path": "t/rust.so"},
            "Loaded `rust` grammar from t/rust.so",
        ),
        ("grammar_load", {}, "Loaded `<unknown>` grammar"),
        ("code_block", {"language": "toml"}, "Code block with `toml` language detected"),
        (
            "code_block_skipped",
            {"language": "toml", "offset": 4},
            "Left `toml` code block at offset 4 unhighlighted",
        ),
        ("unknown", {}, None),
    ],
)
def test_format_event_message(name: str, payload: dict, expected: str | None) -> None:
    assert format_event_message(name, payload) == expected


def test_exception_messages_follow_causes() -> None:
    with pytest.raises(HighlightError) as excinfo:
        _raise_chained_error()

    assert exception_messages(excinfo.value) == [
        "Failed to preprocess chapter 'Intro'",
        "Failed to highlight `toml` code block at offset 12",
        "Error opening dynamic library 'treesitter/toml.so'",
    ]
    assert exception_hint(excinfo.value) == "Error opening dynamic library 'treesitter/toml.so'"


def test_exception_messages_render_structured_errors() -> None:
    assert str(CyclicInheritance(["a", "b", "a"])) == "Cyclic query inheritance: a -> b -> a"
    assert str(UnmappedCapture("markup.bold")) == (
        "no highlightjs match found for highlight `markup.bold`"
    )
    assert exception_hint(HighlightError()) is None


def test_cli_emitter_writes_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    state = set_cli_state(verbosity=1, debug=False)
    emitter = CliEmitter(state=state)

    emitter.warning("Heads up", exc=GrammarNotFound("no grammar"))
    emitter.error("Boom", exc=None)
    emitter.event("custom", {"flag": True})

    captured = capsys.readouterr()
    assert "warning: Heads up" in captured.err
    assert "GrammarNotFound" in captured.err
    assert "error: Boom" in captured.err
    assert captured.out == ""
    assert emitter.debug_enabled is False


def test_emit_fatal_lists_causal_chain(capsys: pytest.CaptureFixture[str]) -> None:
    set_cli_state(verbosity=0, debug=False)

    with pytest.raises(HighlightError) as excinfo:
        _raise_chained_error()
    emit_fatal(excinfo.value)

    err = capsys.readouterr().err
    assert err.splitlines()[0] == "Fatal error: Failed to preprocess chapter 'Intro'"
    assert "  - Failed to highlight `toml` code block at offset 12" in err
    assert "  - Error opening dynamic library 'treesitter/toml.so'" in err


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, logging.INFO),
        ("debug", logging.DEBUG),
        ("WARN", logging.WARNING),
        ("bogus", logging.INFO),
    ],
)
def test_resolve_level(raw: str | None, expected: int) -> None:
    assert resolve_level(raw) == expected


def test_init_logging_honours_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(LOG_ENV_VAR, "warning")

    package_logger = init_logging()
    assert package_logger.level == logging.WARNING

    init_logging(verbosity=1)
    assert package_logger.level == logging.DEBUG
    tagged = [h for h in package_logger.handlers if getattr(h, "_mdbook_treesitter", False)]
    assert len(tagged) == 1
