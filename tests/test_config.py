from pathlib import Path
import sys

import pytest

from mdbook_treesitter.core.config import TreesitterConfig, platform_library_extension
from mdbook_treesitter.core.exceptions import ConfigInvalid, ConfigMissing


def _book_config(**table: object) -> dict[str, object]:
    return {"book": {"title": "Demo"}, "preprocessor": {"treesitter": table}}


def test_languages_and_hidelines_are_read(tmp_path: Path) -> None:
    config = _book_config(languages=["rust", "toml"])
    config["output"] = {"html": {"code": {"hidelines": {"rust": "#", "python": "~"}}}}

    settings = TreesitterConfig.from_book_config(config, tmp_path)

    assert settings.languages == ["rust", "toml"]
    assert settings.grammar_dir == tmp_path / "treesitter"
    assert settings.hide_prefix("rust") == "#"
    assert settings.hide_prefix("toml") is None
    assert settings.fail_fast is True
    assert settings.symbol_prefix == "tree_sitter"


def test_absolute_grammar_dir_is_kept(tmp_path: Path) -> None:
    grammars = tmp_path / "grammars"
    config = _book_config(languages=["rust"], grammar_dir=str(grammars))

    settings = TreesitterConfig.from_book_config(config, tmp_path / "book")

    assert settings.grammar_dir == grammars


def test_grammar_dir_without_root_stays_relative() -> None:
    settings = TreesitterConfig.from_book_config(_book_config(languages=[]))

    assert settings.grammar_dir == Path("treesitter")


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"preprocessor": {}},
        {"preprocessor": {"treesitter": {}}},
        {"preprocessor": {"treesitter": {"command": "mdbook-treesitter"}}},
        {"preprocessor": "treesitter"},
    ],
)
def test_missing_languages_is_reported(config: dict[str, object]) -> None:
    with pytest.raises(ConfigMissing, match="preprocessor.treesitter.languages"):
        TreesitterConfig.from_book_config(config)


@pytest.mark.parametrize("languages", ["rust", ["rust", 3], None])
def test_languages_must_be_a_list_of_strings(languages: object) -> None:
    with pytest.raises(ConfigInvalid, match="list of strings"):
        TreesitterConfig.from_book_config(_book_config(languages=languages))


def test_invalid_option_type_is_reported() -> None:
    with pytest.raises(ConfigInvalid, match="Invalid preprocessor.treesitter configuration"):
        TreesitterConfig.from_book_config(_book_config(languages=["rust"], fail_fast="maybe"))


def test_unknown_keys_are_ignored() -> None:
    config = _book_config(languages=["rust"], command="mdbook-treesitter", renderers=["html"])

    assert TreesitterConfig.from_book_config(config).languages == ["rust"]


def test_non_string_hidelines_are_dropped() -> None:
    config = _book_config(languages=["rust"])
    config["output"] = {"html": {"code": {"hidelines": {"rust": "#", "toml": 4}}}}

    settings = TreesitterConfig.from_book_config(config)

    assert settings.hidelines == {"rust": "#"}


def test_extensions_lose_leading_dot() -> None:
    settings = TreesitterConfig(languages=[], library_extension=".dylib", query_extension=".scm")

    assert settings.library_extension == "dylib"
    assert settings.query_extension == "scm"


@pytest.mark.parametrize(
    ("platform", "expected"),
    [
        ("darwin", "dylib"),
        ("win32", "dll"),
        ("cygwin", "dll"),
        ("linux", "so"),
        ("freebsd14", "so"),
    ],
)
def test_platform_library_extension(platform: str, expected: str) -> None:
    assert platform_library_extension(platform) == expected


def test_default_extension_follows_running_platform() -> None:
    settings = TreesitterConfig(languages=["rust"])

    assert settings.library_extension == platform_library_extension(sys.platform)
