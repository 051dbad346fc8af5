"""Configuration models consumed from the host book.

TreesitterConfig

`languages` (`list[str]`)
: Languages whose fenced code blocks are highlighted. Blocks tagged with any
  other language pass through untouched. The key is mandatory.

`grammar_dir` (`Path`)
: Directory holding one dynamic library per language and one query folder per
  language. Relative paths are resolved against the book root.

`symbol_prefix` (`str`)
: Prefix of the exported grammar constructor, joined to the language name with
  an underscore.

`library_extension` (`str | None`)
: File extension of grammar libraries. Defaults to the platform convention.

`query_extension` (`str`)
: File extension of query sources.

`fail_fast` (`bool`)
: Abort the run on the first block that fails to render. When `False`, the
  block is left as-is and a warning is emitted instead.

`hidelines` (`dict[str, str]`)
: Per-language prefix marking lines that are parsed by the book but hidden from
  the rendered listing. Read from ``output.html.code.hidelines``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
import sys
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigInvalid, ConfigMissing


PREPROCESSOR = "treesitter"

_PLATFORM_EXTENSIONS = {"darwin": "dylib", "win32": "dll", "cygwin": "dll"}


def platform_library_extension(platform: str | None = None) -> str:
    """Return the dynamic library extension for ``platform``."""
    return _PLATFORM_EXTENSIONS.get(platform or sys.platform, "so")


class TreesitterConfig(BaseModel):
    """Preprocessor settings taken from ``book.toml``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    languages: list[str]
    grammar_dir: Path = Path("treesitter")
    symbol_prefix: str = "tree_sitter"
    library_extension: str = Field(default_factory=platform_library_extension)
    query_extension: str = "scm"
    fail_fast: bool = True
    hidelines: dict[str, str] = Field(default_factory=dict)

    @field_validator("library_extension", "query_extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        return value.lstrip(".")

    def hide_prefix(self, language: str) -> str | None:
        """Return the hide-line prefix configured for ``language``."""
        return self.hidelines.get(language)

    @classmethod
    def from_book_config(
        cls, config: Mapping[str, Any], root: Path | str | None = None
    ) -> TreesitterConfig:
        """Build the configuration from a host configuration mapping."""
        table = _lookup(config, "preprocessor", PREPROCESSOR)
        if not isinstance(table, Mapping) or "languages" not in table:
            raise ConfigMissing(
                f"preprocessor.{PREPROCESSOR}.languages is missing from the project 'book.toml'"
            )

        languages = table["languages"]
        if not isinstance(languages, list) or not all(isinstance(v, str) for v in languages):
            raise ConfigInvalid(f"preprocessor.{PREPROCESSOR}.languages must be a list of strings")

        data = dict(table)
        hidelines = _lookup(config, "output", "html", "code", "hidelines")
        if isinstance(hidelines, Mapping):
            data["hidelines"] = {
                str(key): value for key, value in hidelines.items() if isinstance(value, str)
            }

        try:
            settings = cls(**data)
        except ValidationError as exc:
            message = f"Invalid preprocessor.{PREPROCESSOR} configuration: {exc}"
            raise ConfigInvalid(message) from exc

        if root is not None and not settings.grammar_dir.is_absolute():
            grammar_dir = Path(root) / settings.grammar_dir
            settings = settings.model_copy(update={"grammar_dir": grammar_dir})
        return settings


def _lookup(config: Mapping[str, Any], *keys: str) -> Any:
    current: Any = config
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


__all__ = ["PREPROCESSOR", "TreesitterConfig", "platform_library_extension"]
