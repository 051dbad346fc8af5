"""HTML rendering of highlight events using highlight.js class names."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from html import escape
from types import MappingProxyType

from .exceptions import BadHighlightIndex, MalformedSpan, UnmappedCapture
from .highlight import HIGHLIGHT_NAMES, HighlightEnd, HighlightEvent, HighlightStart, SourceRange


CONTAINER_CLASS = "hljs"

HLJS_CLASSES: Mapping[str, str] = MappingProxyType(
    {
        "type": "hljs-type",
        "constructor": "hljs-title function_",
        "constant": "hljs-variable constant_",
        "constant.builtin": "hljs-built_in",
        "constant.character": "hljs-symbol",
        "constant.character.escape": "hljs-symbol",
        "string": "hljs-string",
        "string.regexp": "hljs-regexp",
        "string.special": "hljs-string",
        "string.escape": "hljs-char escape_",
        "escape": "hljs-char escape_",
        "comment": "hljs-comment",
        "variable": "hljs-variable",
        "variable.parameter": "hljs-params",
        "variable.builtin": "hljs-built_in",
        "variable.other.member": "hljs-variable",
        "label": "hljs-symbol",
        "punctuation": "hljs-punctuation",
        "punctuation.special": "hljs-punctuation",
        "keyword": "hljs-keyword",
        "keyword.storage.modifier.ref": "hljs-keyword",
        "keyword.control.conditional": "hljs-keyword",
        "operator": "hljs-operator",
        "function": "hljs-title function_",
        "function.macro": "hljs-title function_",
        "tag": "hljs-tag",
        "attribute": "hljs-attribute",
        "namespace": "hljs-title class_",
        "special": "hljs-literal",
        "number": "hljs-number",
    }
)


class HtmlRenderer:
    """Turn an event stream into a ``<pre><code>`` listing."""

    def __init__(
        self,
        names: Sequence[str] = HIGHLIGHT_NAMES,
        classes: Mapping[str, str] = HLJS_CLASSES,
        container_class: str = CONTAINER_CLASS,
    ) -> None:
        self.names = tuple(names)
        self.classes = classes
        self.container_class = container_class

    def css_class(self, index: int) -> str:
        """Return the output class for vocabulary entry ``index``."""
        if not 0 <= index < len(self.names):
            raise BadHighlightIndex(f"no highlight name found for highlight index {index}")
        name = self.names[index]
        css = self.classes.get(name)
        if css is None:
            raise UnmappedCapture(name)
        return css

    def render(self, events: Iterable[HighlightEvent], source: bytes) -> str:
        parts = [f'<pre><code class="{self.container_class}">\n']
        for event in events:
            if isinstance(event, SourceRange):
                parts.append(escape(_decode(source, event.start, event.end), quote=False))
            elif isinstance(event, HighlightStart):
                parts.append(f"<span class='{self.css_class(event.index)}'>")
            elif isinstance(event, HighlightEnd):
                parts.append("</span>")
        parts.append("\n</code></pre>")
        return "".join(parts)


def _decode(source: bytes, start: int, end: int) -> str:
    if not 0 <= start <= end <= len(source):
        raise MalformedSpan(f"Source range {start}..{end} is outside of {len(source)} bytes")
    try:
        return source[start:end].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedSpan(f"Source range {start}..{end} splits a UTF-8 sequence") from exc


__all__ = ["CONTAINER_CLASS", "HLJS_CLASSES", "HtmlRenderer"]
