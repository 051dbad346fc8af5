"""Tree-sitter syntax highlighting for fenced code blocks in Markdown books."""

from __future__ import annotations

from mdbook_treesitter.core.book import run_preprocessor, supports_renderer, transform_book
from mdbook_treesitter.core.config import TreesitterConfig
from mdbook_treesitter.core.documents import (
    CodeBlockRegion,
    CodeHighlighter,
    DocumentRewriter,
    extract_code_body,
    filter_hidden_lines,
    scan_code_blocks,
)
from mdbook_treesitter.core.exceptions import HighlightError
from mdbook_treesitter.core.grammar import GrammarLoader
from mdbook_treesitter.core.highlight import HIGHLIGHT_NAMES, HighlightConfiguration, Highlighter
from mdbook_treesitter.core.queries import QueryComposer, QuerySet
from mdbook_treesitter.core.rendering import HLJS_CLASSES, HtmlRenderer
from mdbook_treesitter.version import get_version


__version__ = get_version()

__all__ = [
    "HIGHLIGHT_NAMES",
    "HLJS_CLASSES",
    "CodeBlockRegion",
    "CodeHighlighter",
    "DocumentRewriter",
    "GrammarLoader",
    "HighlightConfiguration",
    "HighlightError",
    "Highlighter",
    "HtmlRenderer",
    "QueryComposer",
    "QuerySet",
    "TreesitterConfig",
    "__version__",
    "extract_code_body",
    "filter_hidden_lines",
    "get_version",
    "run_preprocessor",
    "scan_code_blocks",
    "supports_renderer",
    "transform_book",
]
