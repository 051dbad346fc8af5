"""Query source loading with textual ``inherits`` expansion.

Query files live at ``<grammar root>/<language>/<name>.scm``. A comment line
such as ``; inherits: ecma,jsx`` is replaced by the same query of every listed
language, each surrounded by blank lines. Expansion is plain concatenation, so
rules of the inheriting file come after those it inherits from.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import re

from .exceptions import CyclicInheritance, QueryLoadError


logger = logging.getLogger(__name__)

HIGHLIGHTS = "highlights"
INJECTIONS = "injections"
LOCALS = "locals"
QUERY_NAMES = (HIGHLIGHTS, INJECTIONS, LOCALS)

_INHERITS = re.compile(r";+\s*inherits\s*:?\s*([a-z_,()-]+)\s*")


@dataclass(frozen=True, slots=True)
class QuerySet:
    """Fully expanded query sources of one language."""

    highlights: str
    injections: str = ""
    locals: str = ""


class QueryComposer:
    """Read and expand query files below a grammar root."""

    def __init__(self, base_dir: Path | str, extension: str = "scm") -> None:
        self.base_dir = Path(base_dir)
        self.extension = extension.lstrip(".")

    def path_for(self, language: str, name: str) -> Path:
        return self.base_dir / language / f"{name}.{self.extension}"

    def read(self, language: str, name: str) -> str:
        path = self.path_for(language, name)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise QueryLoadError(f"Unable to read {name} query for `{language}` at {path}") from exc

    def compose(self, language: str, name: str, _chain: tuple[str, ...] = ()) -> str:
        """Return the ``name`` query of ``language`` with inheritance expanded."""
        chain = (*_chain, language)
        if language in _chain:
            raise CyclicInheritance(list(chain))

        source = self.read(language, name)

        def expand(match: re.Match[str]) -> str:
            parents = [part.strip() for part in match.group(1).split(",")]
            return "".join(
                f"\n{self.compose(parent, name, chain)}\n" for parent in parents if parent
            )

        expanded = _INHERITS.sub(expand, source)
        if _chain:
            logger.debug("Inlined %s query of %s into %s", name, language, _chain[-1])
        return expanded

    def compose_optional(self, language: str, name: str) -> str:
        """Like :meth:`compose`, but an absent top-level file yields an empty query."""
        if not self.path_for(language, name).is_file():
            return ""
        return self.compose(language, name)

    def load(self, language: str) -> QuerySet:
        """Return the highlights, injections and locals queries of ``language``."""
        return QuerySet(
            highlights=self.compose(language, HIGHLIGHTS),
            injections=self.compose_optional(language, INJECTIONS),
            locals=self.compose_optional(language, LOCALS),
        )


__all__ = [
    "HIGHLIGHTS",
    "INJECTIONS",
    "LOCALS",
    "QUERY_NAMES",
    "QueryComposer",
    "QuerySet",
]
