"""Query-driven highlighting over tree-sitter syntax trees.

A :class:`HighlightConfiguration` bundles a grammar with its compiled queries
and maps every capture name of the highlights query onto a fixed vocabulary.
:class:`Highlighter` parses a byte string, runs the queries and flattens the
captured nodes into a well-nested stream of events:

``SourceRange(start, end)``
: bytes to copy verbatim.

``HighlightStart(index)``
: opens a region styled with ``HIGHLIGHT_NAMES[index]``.

``HighlightEnd()``
: closes the innermost open region.

Capture resolution follows tree-sitter's highlighter: a capture name maps to
the recognised name with the most dot-separated parts contained in it, later
patterns win over earlier ones for the same node, and references found by the
locals query inherit the highlight of the definition they resolve to.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
import logging
from types import MappingProxyType

from tree_sitter import Language, Node, Parser, Query, QueryCursor, QueryError

from .exceptions import QueryCompileError
from .queries import HIGHLIGHTS, INJECTIONS, LOCALS, QuerySet


logger = logging.getLogger(__name__)

HIGHLIGHT_NAMES: tuple[str, ...] = (
    "type",
    "constructor",
    "constant",
    "constant.builtin",
    "constant.character",
    "constant.character.escape",
    "string",
    "string.regexp",
    "string.special",
    "string.escape",
    "escape",
    "comment",
    "variable",
    "variable.parameter",
    "variable.builtin",
    "variable.other.member",
    "label",
    "punctuation",
    "punctuation.special",
    "keyword",
    "keyword.storage.modifier.ref",
    "keyword.control.conditional",
    "operator",
    "function",
    "function.macro",
    "tag",
    "attribute",
    "namespace",
    "special",
    "markup.heading.marker",
    "markup.heading.1",
    "markup.heading.2",
    "markup.heading.3",
    "markup.heading.4",
    "markup.heading.5",
    "markup.heading.6",
    "markup.list",
    "markup.bold",
    "markup.italic",
    "markup.strikethrough",
    "markup.link.url",
    "markup.link.text",
    "markup.raw",
    "diff.plus",
    "diff.minus",
    "diff.delta",
    "number",
)

LOCAL_SCOPE = "local.scope"
LOCAL_DEFINITION = "local.definition"
LOCAL_REFERENCE = "local.reference"
SCOPE_INHERITS = "local.scope-inherits"


@dataclass(frozen=True, slots=True)
class SourceRange:
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class HighlightStart:
    index: int


@dataclass(frozen=True, slots=True)
class HighlightEnd:
    pass


HighlightEvent = SourceRange | HighlightStart | HighlightEnd


def match_capture(capture_name: str, recognized_names: Sequence[str]) -> int | None:
    """Return the index of the recognised name that best describes ``capture_name``."""
    capture_parts = capture_name.split(".")
    best_index: int | None = None
    best_length = 0
    for index, recognized in enumerate(recognized_names):
        parts = recognized.split(".")
        if all(part in capture_parts for part in parts) and len(parts) > best_length:
            best_index = index
            best_length = len(parts)
    return best_index


@dataclass(frozen=True, slots=True)
class HighlightConfiguration:
    """Immutable grammar and query bundle for one language."""

    name: str
    language: Language
    highlights_query: Query
    injections_query: Query | None
    locals_query: Query | None
    recognized_names: tuple[str, ...]
    highlight_indices: Mapping[str, int | None]

    @classmethod
    def build(
        cls,
        name: str,
        language: Language,
        queries: QuerySet,
        recognized_names: Iterable[str] = HIGHLIGHT_NAMES,
    ) -> HighlightConfiguration:
        """Compile ``queries`` against ``language`` and resolve capture names."""
        names = tuple(recognized_names)
        highlights = _compile(name, language, HIGHLIGHTS, queries.highlights)
        indices = {
            capture: match_capture(capture, names)
            for capture in (
                highlights.capture_name(i) for i in range(highlights.capture_count)
            )
        }
        ignored = sorted(capture for capture, index in indices.items() if index is None)
        if ignored:
            logger.debug("Ignoring `%s` captures: %s", name, ", ".join(ignored))
        return cls(
            name=name,
            language=language,
            highlights_query=highlights,
            injections_query=_compile_optional(name, language, INJECTIONS, queries.injections),
            locals_query=_compile_optional(name, language, LOCALS, queries.locals),
            recognized_names=names,
            highlight_indices=MappingProxyType(indices),
        )

    def highlight_for(self, capture_name: str) -> int | None:
        return self.highlight_indices.get(capture_name)


def _compile(name: str, language: Language, kind: str, source: str) -> Query:
    try:
        return Query(language, source)
    except QueryError as exc:
        raise QueryCompileError(f"Invalid {kind} query for `{name}`: {exc}") from exc


def _compile_optional(name: str, language: Language, kind: str, source: str) -> Query | None:
    if not source.strip():
        return None
    return _compile(name, language, kind, source)


@dataclass(slots=True)
class HighlightSpan:
    """Byte range of a node together with its resolved highlight."""

    start: int
    end: int
    highlight: int | None
    pattern: int = -1
    node_id: int = -1


@dataclass(slots=True)
class _Definition:
    highlight: int | None = None


@dataclass(slots=True)
class _Scope:
    start: int
    end: int
    inherits: bool = True
    definitions: dict[bytes, _Definition] = field(default_factory=dict)


@dataclass(slots=True)
class _Locals:
    scopes: list[_Scope] = field(default_factory=list)
    definitions: dict[int, tuple[int, int, bytes]] = field(default_factory=dict)
    references: dict[int, tuple[Node, bytes]] = field(default_factory=dict)


_SCOPE, _DEFINITION, _SPAN = 0, 1, 2


class Highlighter:
    """Parse source text and produce highlight events."""

    def __init__(self) -> None:
        self._parser = Parser()

    def highlight(self, config: HighlightConfiguration, source: bytes) -> list[HighlightEvent]:
        """Return the event stream covering the whole of ``source``."""
        self._parser.language = config.language
        tree = self._parser.parse(source)
        spans = collect_spans(config, tree.root_node, source)
        return list(iter_events(spans, len(source)))


def collect_spans(
    config: HighlightConfiguration, root: Node, source: bytes
) -> list[HighlightSpan]:
    """Return highlighted node spans ordered by start, outermost first."""
    chosen: dict[int, tuple[int, Node, str]] = {}
    for pattern, captures in QueryCursor(config.highlights_query).matches(root):
        for capture_name, nodes in captures.items():
            for node in nodes:
                previous = chosen.get(node.id)
                if previous is None or pattern >= previous[0]:
                    chosen[node.id] = (pattern, node, capture_name)

    locals_ = _collect_locals(config.locals_query, root, source)

    spans = [
        HighlightSpan(
            node.start_byte,
            node.end_byte,
            config.highlight_for(capture_name),
            pattern,
            node_id,
        )
        for node_id, (pattern, node, capture_name) in chosen.items()
    ]
    spans.extend(
        HighlightSpan(node.start_byte, node.end_byte, None, node_id=node_id)
        for node_id, (node, _) in locals_.references.items()
        if node_id not in chosen
    )
    if not locals_.definitions and not locals_.references:
        spans = [span for span in spans if span.highlight is not None]
        spans.sort(key=lambda span: (span.start, -span.end, span.pattern))
        return spans
    return _resolve_locals(spans, locals_, len(source))


def _collect_locals(query: Query | None, root: Node, source: bytes) -> _Locals:
    collected = _Locals()
    if query is None:
        return collected

    for pattern, captures in QueryCursor(query).matches(root):
        settings = query.pattern_settings(pattern)
        for capture_name, nodes in captures.items():
            for node in nodes:
                text = source[node.start_byte : node.end_byte]
                if capture_name == LOCAL_SCOPE:
                    collected.scopes.append(
                        _Scope(
                            node.start_byte,
                            node.end_byte,
                            inherits=settings.get(SCOPE_INHERITS) != "false",
                        )
                    )
                elif capture_name == LOCAL_DEFINITION or capture_name.startswith(
                    f"{LOCAL_DEFINITION}."
                ):
                    collected.definitions[node.id] = (node.start_byte, node.end_byte, text)
                elif capture_name == LOCAL_REFERENCE:
                    collected.references[node.id] = (node, text)
    return collected


def _resolve_locals(
    spans: list[HighlightSpan], locals_: _Locals, length: int
) -> list[HighlightSpan]:
    items: list[tuple[int, int, int, int, object]] = []
    items.extend((scope.start, _SCOPE, -scope.end, 0, scope) for scope in locals_.scopes)
    items.extend(
        (start, _DEFINITION, -end, 0, (node_id, name))
        for node_id, (start, end, name) in locals_.definitions.items()
    )
    items.extend((span.start, _SPAN, -span.end, span.pattern, span) for span in spans)
    items.sort(key=lambda item: item[:4])

    stack = [_Scope(0, length)]
    by_node: dict[int, _Definition] = {}
    resolved: list[HighlightSpan] = []
    for start, kind, _, _, payload in items:
        while len(stack) > 1 and stack[-1].end <= start:
            stack.pop()

        if kind == _SCOPE:
            stack.append(payload)  # type: ignore[arg-type]
        elif kind == _DEFINITION:
            node_id, name = payload  # type: ignore[misc]
            definition = _Definition()
            stack[-1].definitions[name] = definition
            by_node[node_id] = definition
        else:
            span: HighlightSpan = payload  # type: ignore[assignment]
            definition = by_node.get(span.node_id)
            if definition is not None:
                if definition.highlight is None:
                    definition.highlight = span.highlight
            elif span.node_id in locals_.references:
                _, name = locals_.references[span.node_id]
                target = _lookup(stack, name)
                if target is not None and target.highlight is not None:
                    span.highlight = target.highlight
            if span.highlight is not None:
                resolved.append(span)
    return resolved


def _lookup(stack: list[_Scope], name: bytes) -> _Definition | None:
    for scope in reversed(stack):
        definition = scope.definitions.get(name)
        if definition is not None:
            return definition
        if not scope.inherits:
            break
    return None


def iter_events(spans: Iterable[HighlightSpan], length: int) -> Iterator[HighlightEvent]:
    """Flatten ordered spans into a well-nested event stream over ``length`` bytes."""
    ends: list[int] = []
    cursor = 0

    for span in spans:
        if span.highlight is None:
            continue
        while ends and ends[-1] <= span.start:
            end = ends.pop()
            if cursor < end:
                yield SourceRange(cursor, end)
                cursor = end
            yield HighlightEnd()

        start = max(span.start, cursor)
        end = min(span.end, ends[-1]) if ends else min(span.end, length)
        if start >= end:
            continue
        if cursor < start:
            yield SourceRange(cursor, start)
            cursor = start
        yield HighlightStart(span.highlight)
        ends.append(end)

    while ends:
        end = ends.pop()
        if cursor < end:
            yield SourceRange(cursor, end)
            cursor = end
        yield HighlightEnd()

    if cursor < length:
        yield SourceRange(cursor, length)


__all__ = [
    "HIGHLIGHT_NAMES",
    "HighlightConfiguration",
    "HighlightEnd",
    "HighlightEvent",
    "HighlightSpan",
    "HighlightStart",
    "Highlighter",
    "SourceRange",
    "collect_spans",
    "iter_events",
    "match_capture",
]
