"""Custom exception hierarchy for the tree-sitter highlighting pipeline."""

from __future__ import annotations


class HighlightError(RuntimeError):
    """Base exception for highlighting failures."""


class ConfigMissing(HighlightError):
    """Raised when the language allow-list is absent from the host configuration."""


class ConfigInvalid(HighlightError):
    """Raised when the host configuration has an unexpected shape."""


class GrammarNotFound(HighlightError):
    """Raised when no grammar library exists for a language."""


class SymbolNotFound(HighlightError):
    """Raised when a grammar library lacks the expected constructor symbol."""


class GrammarLoadError(HighlightError):
    """Raised when the dynamic loader fails to open or initialise a grammar."""


class QueryLoadError(HighlightError):
    """Raised when a query source file cannot be read."""


class CyclicInheritance(HighlightError):
    """Raised when query files inherit from each other in a loop."""

    def __init__(self, chain: list[str]) -> None:
        self.chain = list(chain)
        super().__init__(f"Cyclic query inheritance: {' -> '.join(self.chain)}")


class QueryCompileError(HighlightError):
    """Raised when the query engine rejects a composed query."""


class BadHighlightIndex(HighlightError):
    """Raised when an event references a capture index outside the vocabulary."""


class UnmappedCapture(HighlightError):
    """Raised when a recognised capture has no output class."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"no highlightjs match found for highlight `{name}`")


class MalformedSpan(HighlightError):
    """Raised when span bookkeeping produces offsets that cannot be applied."""


class CodeBlockError(HighlightError):
    """Raised when a single fenced code block fails to render."""

    def __init__(self, language: str, offset: int, message: str | None = None) -> None:
        self.language = language
        self.offset = offset
        super().__init__(
            message or f"Failed to highlight `{language}` code block at offset {offset}"
        )


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "BadHighlightIndex",
    "CodeBlockError",
    "ConfigInvalid",
    "ConfigMissing",
    "CyclicInheritance",
    "GrammarLoadError",
    "GrammarNotFound",
    "HighlightError",
    "MalformedSpan",
    "QueryCompileError",
    "QueryLoadError",
    "SymbolNotFound",
    "UnmappedCapture",
    "exception_hint",
    "exception_messages",
]
