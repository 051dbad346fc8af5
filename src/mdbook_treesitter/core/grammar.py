"""Runtime loading of compiled tree-sitter grammars.

Each language ships as a dynamic library named ``<language>.<ext>`` inside the
grammar root. The library exports a zero-argument constructor following the
``<prefix>_<language>`` convention (hyphens replaced by underscores) that
returns a pointer to the grammar definition.

The grammar keeps pointers into the library image, so loaded libraries are
never closed. :class:`GrammarLoader` owns the registry of opened modules for
the lifetime of the process and only hands out :class:`tree_sitter.Language`
objects. Opening libraries goes through a :class:`NativeModuleLoader` so the
naming convention can be exercised without real shared objects.
"""

from __future__ import annotations

from collections.abc import Callable
import ctypes
import logging
from pathlib import Path
from typing import Any, Protocol

from tree_sitter import Language

from .config import platform_library_extension
from .diagnostics import DiagnosticEmitter, NullEmitter
from .exceptions import GrammarLoadError, GrammarNotFound, SymbolNotFound


logger = logging.getLogger(__name__)

DEFAULT_SYMBOL_PREFIX = "tree_sitter"

_CAPSULE_NAME = b"tree_sitter.Language"

_capsule_new = ctypes.pythonapi.PyCapsule_New
_capsule_new.restype = ctypes.py_object
_capsule_new.argtypes = (ctypes.c_void_p, ctypes.c_char_p, ctypes.c_void_p)


def symbol_name(language: str, prefix: str = DEFAULT_SYMBOL_PREFIX) -> str:
    """Return the exported constructor name for ``language``."""
    return f"{prefix}_{language.replace('-', '_')}"


def library_path(base: Path, language: str, extension: str | None = None) -> Path:
    """Return the dynamic library path for ``language`` below ``base``."""
    return Path(base) / f"{language}.{extension or platform_library_extension()}"


class NativeModule(Protocol):
    """Opened dynamic module exposing grammar constructors."""

    def symbol(self, name: str) -> Callable[[], Any] | None: ...


class NativeModuleLoader(Protocol):
    """Capability that opens dynamic modules."""

    def open(self, path: Path) -> NativeModule: ...


class CtypesModule:
    """Dynamic library opened through :mod:`ctypes`."""

    def __init__(self, library: ctypes.CDLL) -> None:
        self._library = library

    def symbol(self, name: str) -> Callable[[], Any] | None:
        try:
            function = getattr(self._library, name)
        except AttributeError:
            return None
        function.restype = ctypes.c_void_p
        function.argtypes = []

        def construct() -> Any:
            pointer = function()
            if not pointer:
                raise GrammarLoadError(f"{name} returned a null grammar pointer")
            return _capsule_new(pointer, _CAPSULE_NAME, None)

        return construct


class CtypesLoader:
    """Open grammar libraries with :class:`ctypes.CDLL`."""

    def open(self, path: Path) -> CtypesModule:
        return CtypesModule(ctypes.CDLL(str(path)))


class GrammarLoader:
    """Resolve language identifiers to loaded tree-sitter grammars."""

    def __init__(
        self,
        base_dir: Path | str,
        *,
        symbol_prefix: str = DEFAULT_SYMBOL_PREFIX,
        extension: str | None = None,
        native: NativeModuleLoader | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.symbol_prefix = symbol_prefix
        self.extension = extension or platform_library_extension()
        self._native = native or CtypesLoader()
        self._emitter = emitter or NullEmitter()
        self._modules: dict[str, NativeModule] = {}
        self._languages: dict[str, Language] = {}

    def __contains__(self, language: str) -> bool:
        return language in self._languages

    def path_for(self, language: str) -> Path:
        return library_path(self.base_dir, language, self.extension)

    def load(self, language: str) -> Language:
        """Return the grammar for ``language``, opening its library on first use."""
        cached = self._languages.get(language)
        if cached is not None:
            return cached

        path = self.path_for(language)
        if not path.is_file():
            raise GrammarNotFound(f"Error opening dynamic library {str(path)!r}: file not found")

        module = self._modules.get(language)
        if module is None:
            try:
                module = self._native.open(path)
            except OSError as exc:
                raise GrammarLoadError(f"Error opening dynamic library {str(path)!r}") from exc
            self._modules[language] = module

        name = symbol_name(language, self.symbol_prefix)
        constructor = module.symbol(name)
        if constructor is None:
            raise SymbolNotFound(f"Failed to load symbol {name}")

        try:
            grammar = Language(constructor())
        except GrammarLoadError:
            raise
        except (TypeError, ValueError) as exc:
            raise GrammarLoadError(f"Invalid grammar returned by {name} in {str(path)!r}") from exc

        self._languages[language] = grammar
        logger.debug("Loaded grammar %s from %s", language, path)
        self._emitter.event("grammar_load", {"language": language, "path": str(path)})
        return grammar


__all__ = [
    "DEFAULT_SYMBOL_PREFIX",
    "CtypesLoader",
    "CtypesModule",
    "GrammarLoader",
    "NativeModule",
    "NativeModuleLoader",
    "library_path",
    "symbol_name",
]
