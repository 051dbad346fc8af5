"""MkDocs plugin highlighting fenced code blocks with tree-sitter grammars."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from mkdocs.config import config_options
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import Files
from mkdocs.structure.pages import Page
from mkdocs.utils import log
from pydantic import ValidationError

from mdbook_treesitter.core.config import PREPROCESSOR, TreesitterConfig
from mdbook_treesitter.core.diagnostics import LoggingEmitter
from mdbook_treesitter.core.documents import BlockRenderer, DocumentRewriter
from mdbook_treesitter.core.exceptions import HighlightError, exception_hint


class TreesitterPlugin(BasePlugin):
    """Rewrite allow-listed code fences into highlight.js-compatible HTML."""

    config_scheme = (
        ("enabled", config_options.Type(bool, default=True)),
        ("languages", config_options.Type((list, type(None)), default=None)),
        ("grammar_dir", config_options.Type(str, default="treesitter")),
        ("symbol_prefix", config_options.Type(str, default="tree_sitter")),
        ("library_extension", config_options.Type((str, type(None)), default=None)),
        ("query_extension", config_options.Type(str, default="scm")),
        ("fail_fast", config_options.Type(bool, default=True)),
        ("hidelines", config_options.Type(dict, default={})),
    )

    def __init__(self) -> None:
        self._enabled = True
        self._settings: TreesitterConfig | None = None
        self._rewriter: DocumentRewriter | None = None
        self._renderer: BlockRenderer | None = None

    # -- MkDocs lifecycle -------------------------------------------------

    def on_config(self, config: MkDocsConfig) -> MkDocsConfig:
        self._enabled = bool(self.config.get("enabled", True))
        if not self._enabled:
            return config

        project_dir = Path(config.config_file_path or ".").parent.resolve()
        self._settings = self._build_settings(project_dir)
        self._rewriter = DocumentRewriter.from_config(
            self._settings, self._renderer, emitter=LoggingEmitter(logger_obj=log)
        )
        return config

    def on_page_markdown(
        self, markdown: str, page: Page, config: MkDocsConfig, files: Files
    ) -> str:
        if not self._enabled or self._rewriter is None:
            return markdown
        try:
            return self._rewriter.process(markdown)
        except HighlightError as exc:
            source = getattr(page.file, "src_path", None) or page.title or "<page>"
            raise PluginError(
                f"tree-sitter highlighting failed on page '{source}': {exception_hint(exc)}"
            ) from exc

    # -- Helpers ----------------------------------------------------------

    def _build_settings(self, project_dir: Path) -> TreesitterConfig:
        languages = self.config.get("languages")
        if languages is None:
            raise PluginError(f"plugins.{PREPROCESSOR}.languages is missing from 'mkdocs.yml'")

        data: dict[str, Any] = {
            key: self.config.get(key)
            for key in (
                "grammar_dir",
                "symbol_prefix",
                "library_extension",
                "query_extension",
                "fail_fast",
                "hidelines",
            )
            if self.config.get(key) is not None
        }
        try:
            settings = TreesitterConfig(languages=languages, **data)
        except ValidationError as exc:
            raise PluginError(f"Invalid {PREPROCESSOR} plugin configuration: {exc}") from exc

        if not settings.grammar_dir.is_absolute():
            grammar_dir = project_dir / settings.grammar_dir
            settings = settings.model_copy(update={"grammar_dir": grammar_dir})
        return settings


__all__ = ["TreesitterPlugin"]
