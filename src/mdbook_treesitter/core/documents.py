"""Fenced code block discovery and in-place rewriting of Markdown documents."""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
import logging
import re
from typing import Protocol

from markdown_it import MarkdownIt

from .config import TreesitterConfig
from .diagnostics import DiagnosticEmitter, LoggingEmitter
from .exceptions import CodeBlockError, HighlightError, MalformedSpan, exception_hint
from .grammar import GrammarLoader, NativeModuleLoader
from .highlight import (
    HIGHLIGHT_NAMES,
    HighlightConfiguration,
    HighlightEvent,
    Highlighter,
)
from .queries import QueryComposer
from .rendering import HtmlRenderer


logger = logging.getLogger(__name__)

_md = MarkdownIt("commonmark").enable(["table", "strikethrough"])

_NEWLINE = re.compile(r"\r\n?|\n")
_INFO_SEPARATOR = re.compile(r"[,\s]")


@dataclass(frozen=True, slots=True)
class CodeBlockRegion:
    """Fenced code block located in a document."""

    start: int
    end: int
    language: str
    info: str
    fence: str
    text: str


class BlockRenderer(Protocol):
    """Anything able to turn a code body into rendered markup."""

    def render(self, language: str, code: str) -> str: ...


def fence_language(info: str) -> str:
    """Return the language token of a fence info string (``rust,no_run`` -> ``rust``)."""
    return _INFO_SEPARATOR.split(info.strip(), maxsplit=1)[0]


def _line_bounds(text: str) -> list[tuple[int, int]]:
    bounds: list[tuple[int, int]] = []
    start = 0
    for match in _NEWLINE.finditer(text):
        bounds.append((start, match.start()))
        start = match.end()
    bounds.append((start, len(text)))
    return bounds


def scan_code_blocks(document: str) -> list[CodeBlockRegion]:
    """Return every fenced code block of ``document`` in source order."""
    bounds = _line_bounds(document)
    regions: list[CodeBlockRegion] = []
    for token in _md.parse(document):
        if token.type != "fence" or not token.map:
            continue
        first, last = token.map[0], token.map[1] - 1
        line_start, line_end = bounds[first]
        marker = document.find(token.markup, line_start, line_end)
        if marker < 0:
            raise MalformedSpan(f"Fence marker not found on line {first + 1}")
        end = bounds[max(first, last)][1]
        regions.append(
            CodeBlockRegion(
                start=marker,
                end=end,
                language=fence_language(token.info),
                info=token.info,
                fence=token.markup,
                text=document[marker:end],
            )
        )
    return regions


def _trim_blank_lines(text: str) -> str:
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def extract_code_body(content: str, fence: str = "```") -> str:
    """Strip the opening fence line and closing fence of a raw block."""
    newline = content.find("\n")
    if newline < 0:
        return ""
    body = content[newline + 1 :].rstrip()

    last_newline = body.rfind("\n")
    last_line = body[last_newline + 1 :].strip()
    if last_line and set(last_line) == {fence[0]} and len(last_line) >= len(fence):
        body = body[: last_newline + 1] if last_newline >= 0 else ""
    elif body.endswith(fence):
        body = body[: -len(fence)]
    return _trim_blank_lines(body)


def filter_hidden_lines(code: str, hide_prefix: str | None) -> str:
    """Drop lines whose stripped content starts with ``hide_prefix``."""
    if not hide_prefix:
        return code
    return "\n".join(line for line in code.split("\n") if not line.strip().startswith(hide_prefix))


def replace_spans(document: str, replacements: Iterable[tuple[int, int, str]]) -> str:
    """Substitute ``(start, end, text)`` spans, last span first."""
    ordered = sorted(replacements, key=lambda item: item[0])
    previous_end = 0
    for start, end, _ in ordered:
        if start < previous_end or end < start or end > len(document):
            raise MalformedSpan(f"Span {start}..{end} overlaps or exceeds the document")
        previous_end = end

    for start, end, text in reversed(ordered):
        document = document[:start] + text + document[end:]
    return document


class CodeHighlighter:
    """Grammar, query and rendering pipeline with a per-language cache."""

    def __init__(
        self,
        loader: GrammarLoader,
        composer: QueryComposer,
        *,
        renderer: HtmlRenderer | None = None,
        names: Iterable[str] = HIGHLIGHT_NAMES,
    ) -> None:
        self.loader = loader
        self.composer = composer
        self.names = tuple(names)
        self.renderer = renderer or HtmlRenderer(self.names)
        self._highlighter = Highlighter()
        self._configurations: dict[str, HighlightConfiguration] = {}

    @classmethod
    def from_config(
        cls,
        config: TreesitterConfig,
        *,
        native: NativeModuleLoader | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> CodeHighlighter:
        loader = GrammarLoader(
            config.grammar_dir,
            symbol_prefix=config.symbol_prefix,
            extension=config.library_extension,
            native=native,
            emitter=emitter,
        )
        return cls(loader, QueryComposer(config.grammar_dir, config.query_extension))

    def configuration(self, language: str) -> HighlightConfiguration:
        """Return the highlight configuration of ``language``, building it once."""
        cached = self._configurations.get(language)
        if cached is not None:
            return cached
        grammar = self.loader.load(language)
        queries = self.composer.load(language)
        configuration = HighlightConfiguration.build(language, grammar, queries, self.names)
        self._configurations[language] = configuration
        return configuration

    def render(self, language: str, code: str) -> str:
        source = code.encode("utf-8")
        events: list[HighlightEvent] = self._highlighter.highlight(
            self.configuration(language), source
        )
        return self.renderer.render(events, source)


class DocumentRewriter:
    """Replace allow-listed fenced code blocks with highlighted markup."""

    def __init__(
        self,
        languages: Collection[str],
        renderer: BlockRenderer,
        *,
        hide_prefix: Callable[[str], str | None] | None = None,
        fail_fast: bool = True,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.languages = frozenset(languages)
        self.renderer = renderer
        self.hide_prefix = hide_prefix or (lambda _language: None)
        self.fail_fast = fail_fast
        self._emitter = emitter or LoggingEmitter(logger_obj=logger)

    @classmethod
    def from_config(
        cls,
        config: TreesitterConfig,
        renderer: BlockRenderer | None = None,
        *,
        emitter: DiagnosticEmitter | None = None,
    ) -> DocumentRewriter:
        return cls(
            config.languages,
            renderer or CodeHighlighter.from_config(config, emitter=emitter),
            hide_prefix=config.hide_prefix,
            fail_fast=config.fail_fast,
            emitter=emitter,
        )

    def render_block(self, region: CodeBlockRegion) -> str:
        body = extract_code_body(region.text, region.fence)
        code = filter_hidden_lines(body, self.hide_prefix(region.language))
        return self.renderer.render(region.language, code)

    def process(self, document: str) -> str:
        """Return ``document`` with every accepted code block highlighted."""
        replacements: list[tuple[int, int, str]] = []
        for region in scan_code_blocks(document):
            if region.language not in self.languages:
                continue
            self._emitter.event("code_block", {"language": region.language})
            try:
                markup = self.render_block(region)
            except HighlightError as exc:
                if self.fail_fast:
                    raise CodeBlockError(region.language, region.start) from exc
                self._emitter.warning(
                    f"Leaving `{region.language}` code block at offset {region.start} "
                    f"unhighlighted: {exception_hint(exc)}",
                    exc,
                )
                self._emitter.event(
                    "code_block_skipped", {"language": region.language, "offset": region.start}
                )
                continue
            replacements.append((region.start, region.end, markup))
        return replace_spans(document, replacements)


__all__ = [
    "BlockRenderer",
    "CodeBlockRegion",
    "CodeHighlighter",
    "DocumentRewriter",
    "extract_code_body",
    "fence_language",
    "filter_hidden_lines",
    "replace_spans",
    "scan_code_blocks",
]
