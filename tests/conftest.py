from collections.abc import Callable, Iterator
import logging
from pathlib import Path
from typing import Any

import pytest

from mdbook_treesitter.core.documents import CodeHighlighter
from mdbook_treesitter.core.grammar import GrammarLoader
from mdbook_treesitter.core.queries import QueryComposer


PYTHON_HIGHLIGHTS = """\
(identifier) @variable
(comment) @comment
(string) @string
(integer) @number
["def" "return" "if" "else"] @keyword
(function_definition name: (identifier) @function)
(call function: (identifier) @function)
(parameters (identifier) @variable.parameter)
"""

PYTHON_LOCALS = """\
(function_definition) @local.scope
(parameters (identifier) @local.definition)
(identifier) @local.reference
"""


class FakeModule:
    def __init__(self, symbols: dict[str, Callable[[], Any]]) -> None:
        self.symbols = symbols

    def symbol(self, name: str) -> Callable[[], Any] | None:
        return self.symbols.get(name)


class FakeNative:
    """Native loader handing out pre-registered constructors."""

    def __init__(self, symbols: dict[str, Callable[[], Any]] | None = None) -> None:
        self.symbols = dict(symbols or {})
        self.opened: list[Path] = []

    def open(self, path: Path) -> FakeModule:
        self.opened.append(path)
        return FakeModule(self.symbols)


@pytest.fixture
def python_capsule() -> Callable[[], Any]:
    tree_sitter_python = pytest.importorskip("tree_sitter_python")
    return tree_sitter_python.language


@pytest.fixture
def grammar_root(tmp_path: Path) -> Path:
    root = tmp_path / "treesitter"
    (root / "python").mkdir(parents=True)
    (root / "python.so").write_bytes(b"")
    (root / "python" / "highlights.scm").write_text(PYTHON_HIGHLIGHTS, encoding="utf-8")
    (root / "python" / "locals.scm").write_text(PYTHON_LOCALS, encoding="utf-8")
    return root


@pytest.fixture
def python_loader(grammar_root: Path, python_capsule: Callable[[], Any]) -> GrammarLoader:
    native = FakeNative({"tree_sitter_python": python_capsule})
    return GrammarLoader(grammar_root, extension="so", native=native)


@pytest.fixture
def python_highlighter(grammar_root: Path, python_loader: GrammarLoader) -> CodeHighlighter:
    return CodeHighlighter(python_loader, QueryComposer(grammar_root))


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    package_logger = logging.getLogger("mdbook_treesitter")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
