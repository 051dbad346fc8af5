from pathlib import Path

import pytest

from mdbook_treesitter.core.exceptions import CyclicInheritance, QueryLoadError
from mdbook_treesitter.core.queries import QueryComposer, QuerySet


def _write(root: Path, language: str, name: str, text: str) -> None:
    folder = root / language
    folder.mkdir(parents=True, exist_ok=True)
    (folder / f"{name}.scm").write_text(text, encoding="utf-8")


def test_compose_without_directive_returns_file(tmp_path: Path) -> None:
    _write(tmp_path, "toml", "highlights", "(string) @string\n")

    assert QueryComposer(tmp_path).compose("toml", "highlights") == "(string) @string\n"


def test_inherited_rules_precede_own_rules(tmp_path: Path) -> None:
    _write(tmp_path, "ecma", "highlights", "(number) @number\n")
    _write(tmp_path, "javascript", "highlights", "; inherits: ecma\n(regex) @string.regexp\n")

    composed = QueryComposer(tmp_path).compose("javascript", "highlights")

    assert "inherits" not in composed
    assert composed == "\n(number) @number\n\n(regex) @string.regexp\n"


def test_multiple_parents_are_spliced_in_order(tmp_path: Path) -> None:
    _write(tmp_path, "ecma", "highlights", "(number) @number")
    _write(tmp_path, "jsx", "highlights", "(jsx_element) @tag")
    _write(tmp_path, "tsx", "highlights", ";; inherits: ecma,jsx\n(type_identifier) @type\n")

    composed = QueryComposer(tmp_path).compose("tsx", "highlights")

    assert composed.index("@number") < composed.index("@tag") < composed.index("@type")


def test_nested_inheritance_is_expanded(tmp_path: Path) -> None:
    _write(tmp_path, "c", "highlights", "(comment) @comment\n")
    _write(tmp_path, "cpp", "highlights", "; inherits: c\n(this) @variable.builtin\n")
    _write(tmp_path, "cuda", "highlights", "; inherits: cpp\n")

    composed = QueryComposer(tmp_path).compose("cuda", "highlights")

    assert "(comment) @comment" in composed
    assert "(this) @variable.builtin" in composed


def test_diamond_inheritance_is_not_a_cycle(tmp_path: Path) -> None:
    _write(tmp_path, "base", "highlights", "(a) @keyword\n")
    _write(tmp_path, "left", "highlights", "; inherits: base\n")
    _write(tmp_path, "right", "highlights", "; inherits: base\n")
    _write(tmp_path, "top", "highlights", "; inherits: left,right\n")

    composed = QueryComposer(tmp_path).compose("top", "highlights")

    assert composed.count("(a) @keyword") == 2


def test_cyclic_inheritance_is_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "ping", "highlights", "; inherits: pong\n")
    _write(tmp_path, "pong", "highlights", "; inherits: ping\n")

    with pytest.raises(CyclicInheritance) as excinfo:
        QueryComposer(tmp_path).compose("ping", "highlights")

    assert excinfo.value.chain == ["ping", "pong", "ping"]
    assert "ping -> pong -> ping" in str(excinfo.value)


def test_self_inheritance_is_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "loop", "locals", "; inherits: loop\n")

    with pytest.raises(CyclicInheritance):
        QueryComposer(tmp_path).compose("loop", "locals")


def test_missing_highlights_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(QueryLoadError, match="highlights query for `rust`"):
        QueryComposer(tmp_path).load("rust")


def test_missing_optional_queries_default_to_empty(tmp_path: Path) -> None:
    _write(tmp_path, "rust", "highlights", "(identifier) @variable\n")

    queries = QueryComposer(tmp_path).load("rust")

    assert queries == QuerySet(highlights="(identifier) @variable\n")


def test_missing_inherited_file_is_reported(tmp_path: Path) -> None:
    _write(tmp_path, "rust", "highlights", "; inherits: ghost\n")

    with pytest.raises(QueryLoadError, match="ghost"):
        QueryComposer(tmp_path).compose("rust", "highlights")


def test_custom_extension(tmp_path: Path) -> None:
    folder = tmp_path / "lua"
    folder.mkdir()
    (folder / "injections.query").write_text("(comment) @injection.content", encoding="utf-8")
    (folder / "highlights.query").write_text("(comment) @comment", encoding="utf-8")

    queries = QueryComposer(tmp_path, extension=".query").load("lua")

    assert queries.injections == "(comment) @injection.content"
    assert queries.locals == ""
