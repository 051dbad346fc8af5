"""Preprocessor contract for mdbook's JSON book representation.

mdbook pipes ``[context, book]`` to the preprocessor on stdin and expects the
modified book on stdout. Chapters are nested through ``sub_items``; separators
and part titles carry no content and are left alone.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import IO, Any

from .config import PREPROCESSOR, TreesitterConfig
from .diagnostics import DiagnosticEmitter
from .documents import BlockRenderer, DocumentRewriter
from .exceptions import ConfigInvalid, HighlightError


logger = logging.getLogger(__name__)

SUPPORTED_RENDERERS = frozenset({"html"})
SUPPORTED_MDBOOK_SERIES = "0.4"


def supports_renderer(renderer: str) -> bool:
    """Return whether highlighted output makes sense for ``renderer``."""
    return renderer in SUPPORTED_RENDERERS


@dataclass(slots=True)
class PreprocessorContext:
    """Subset of the mdbook context handed to preprocessors."""

    root: Path
    config: dict[str, Any] = field(default_factory=dict)
    renderer: str = "html"
    mdbook_version: str = ""

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> PreprocessorContext:
        return cls(
            root=Path(payload.get("root") or "."),
            config=dict(payload.get("config") or {}),
            renderer=str(payload.get("renderer") or "html"),
            mdbook_version=str(payload.get("mdbook_version") or ""),
        )

    def is_supported_version(self) -> bool:
        parts = self.mdbook_version.split(".")
        return ".".join(parts[:2]) == SUPPORTED_MDBOOK_SERIES


def parse_input(stream: IO[str]) -> tuple[PreprocessorContext, dict[str, Any]]:
    """Decode the ``[context, book]`` pair sent by mdbook."""
    try:
        payload = json.load(stream)
    except json.JSONDecodeError as exc:
        raise ConfigInvalid("Unable to parse the preprocessor input as JSON") from exc
    if not isinstance(payload, list) or len(payload) != 2:
        raise ConfigInvalid("Preprocessor input must be a [context, book] pair")
    context, book = payload
    if not isinstance(context, Mapping) or not isinstance(book, dict):
        raise ConfigInvalid("Preprocessor input must be a [context, book] pair")
    return PreprocessorContext.from_json(context), book


def iter_chapters(items: Iterable[Any]) -> Iterator[dict[str, Any]]:
    """Yield every chapter of ``items`` depth-first."""
    for item in items:
        if not isinstance(item, Mapping):
            continue
        chapter = item.get("Chapter")
        if isinstance(chapter, dict):
            yield chapter
            yield from iter_chapters(chapter.get("sub_items") or [])


def transform_book(book: dict[str, Any], rewriter: DocumentRewriter) -> dict[str, Any]:
    """Rewrite the content of every chapter of ``book`` in place."""
    sections = book.get("sections", book.get("items")) or []
    for chapter in iter_chapters(sections):
        content = chapter.get("content")
        if not isinstance(content, str):
            continue
        try:
            chapter["content"] = rewriter.process(content)
        except HighlightError as exc:
            name = chapter.get("name") or chapter.get("path") or "<unnamed>"
            logger.error("Failed to preprocess chapter: %s", exc)
            raise HighlightError(f"Failed to preprocess chapter '{name}'") from exc
    return book


def run_preprocessor(
    context: PreprocessorContext,
    book: dict[str, Any],
    *,
    renderer: BlockRenderer | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> dict[str, Any]:
    """Apply the ``treesitter`` preprocessor to ``book``."""
    config = TreesitterConfig.from_book_config(context.config, context.root)
    languages = ", ".join(config.languages) or "no languages"
    logger.debug("Running %s preprocessor for %s", PREPROCESSOR, languages)
    rewriter = DocumentRewriter.from_config(config, renderer, emitter=emitter)
    return transform_book(book, rewriter)


__all__ = [
    "SUPPORTED_MDBOOK_SERIES",
    "SUPPORTED_RENDERERS",
    "PreprocessorContext",
    "iter_chapters",
    "parse_input",
    "run_preprocessor",
    "supports_renderer",
    "transform_book",
]
