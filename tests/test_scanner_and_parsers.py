"""glob 扫描、扫描缓存与内置解析器测试。"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Mapping

import pytest

from shortcut_discovery.core.exceptions import ParserExecutionError, ParserNotFoundError
from shortcut_discovery.core.models import DiscoveryResult
from shortcut_discovery.core.scanner import DiscoveryCache, glob_files, resolve_pattern, scan_glob, to_posix
from shortcut_discovery.parsers.base import DiscoveryParser, ParserInfo, ParserInput
from shortcut_discovery.parsers.glob_parser import GlobParser
from shortcut_discovery.parsers.glob_regex_parser import GlobRegexParser
from shortcut_discovery.parsers.registry import ParserRegistry, default_registry
from shortcut_discovery.parsers.token_glob import glob_to_regex


def real(path: Path) -> str:
    return to_posix(os.path.realpath(path))


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    return path


class ForcedParser(DiscoveryParser):
    def get_parser_info(self) -> ParserInfo:
        return ParserInfo(
            title="Forced",
            inputs={"mode": ParserInput(forced_input="fixed"), "extra": ParserInput()},
        )

    async def execute(self, directory: str, inputs: Mapping[str, str], cache: DiscoveryCache) -> DiscoveryResult:
        return DiscoveryResult()


def test_scan_is_case_insensitive_and_includes_dotfiles(tmp_path: Path) -> None:
    foo = touch(tmp_path / "Images" / "Foo.PNG")
    hidden = touch(tmp_path / "Images" / ".hidden.png")
    touch(tmp_path / "Images" / "notes.txt")

    matches = scan_glob(resolve_pattern(str(tmp_path), "images/*.png"))

    assert sorted(matches) == sorted([real(foo), real(hidden)])


def test_scan_supports_globstar(tmp_path: Path) -> None:
    top = touch(tmp_path / "a.png")
    deep = touch(tmp_path / "x" / "y" / "b.png")

    matches = scan_glob(resolve_pattern(str(tmp_path), "**/*.png"))

    assert sorted(matches) == sorted([real(top), real(deep)])


def test_scan_literal_and_missing_paths(tmp_path: Path) -> None:
    exact = touch(tmp_path / "cover.jpg")

    assert scan_glob(resolve_pattern(str(tmp_path), "cover.jpg")) == [real(exact)]
    assert scan_glob(resolve_pattern(str(tmp_path), "missing/*.png")) == []
    assert scan_glob(resolve_pattern(str(tmp_path), "nothing.png")) == []


def test_scan_resolves_symlinks(tmp_path: Path) -> None:
    target = touch(tmp_path / "real" / "art.png")
    (tmp_path / "link").symlink_to(tmp_path / "real", target_is_directory=True)

    matches = scan_glob(resolve_pattern(str(tmp_path), "link/*.png"))

    assert matches == [real(target)]


def test_identical_patterns_share_one_scan(tmp_path: Path) -> None:
    touch(tmp_path / "a.png")
    cache = DiscoveryCache()
    pattern = resolve_pattern(str(tmp_path), "*.png")

    async def scenario() -> tuple[list[str], list[str], list[str]]:
        first, second = await asyncio.gather(glob_files(pattern, cache), glob_files(pattern, cache))
        first.append("mutated")
        third = await glob_files(pattern, cache)
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert second == third == [real(tmp_path / "a.png")]
    assert "mutated" in first
    assert cache.scans == 1
    assert cache.hits == 2


def test_cache_clear_resets_entries(tmp_path: Path) -> None:
    cache = DiscoveryCache()
    asyncio.run(glob_files(resolve_pattern(str(tmp_path), "*"), cache))
    assert len(cache) == 1

    cache.clear()

    assert len(cache) == 0
    assert cache.scans == 0


def test_glob_to_regex() -> None:
    assert glob_to_regex("a*.png") == r"a[^/]*\.png"
    assert glob_to_regex("x/**/y?") == r"x/(?:.*/)?y[^/]"
    assert glob_to_regex("[!ab]") == "[^ab]"


def test_glob_parser_extracts_titles(tmp_path: Path) -> None:
    bar = touch(tmp_path / "Bar.iso")
    foo = touch(tmp_path / "Foo.Game.iso")
    touch(tmp_path / "readme.txt")

    result = asyncio.run(GlobParser().execute(str(tmp_path), {"glob": "${title}.iso"}, DiscoveryCache()))

    assert [(item.extracted_title, item.file_path) for item in result.success] == [
        ("Bar", real(bar)),
        ("Foo.Game", real(foo)),
    ]
    assert result.failed == []


def test_glob_parser_requires_title_token(tmp_path: Path) -> None:
    with pytest.raises(ParserExecutionError):
        asyncio.run(GlobParser().execute(str(tmp_path), {"glob": "*.iso"}, DiscoveryCache()))


def test_glob_regex_parser_extracts_titles_and_failures(tmp_path: Path) -> None:
    good = touch(tmp_path / "Game One (USA).zip")
    other = touch(tmp_path / "Other.zip")

    result = asyncio.run(
        GlobRegexParser().execute(
            str(tmp_path),
            {"glob-regex": r"${/^([^(]+?)\s*\(/}.zip"},
            DiscoveryCache(),
        )
    )

    assert [(item.extracted_title, item.file_path) for item in result.success] == [("Game One", real(good))]
    assert result.failed == [real(other)]


def test_glob_regex_parser_requires_regex_token(tmp_path: Path) -> None:
    with pytest.raises(ParserExecutionError):
        asyncio.run(GlobRegexParser().execute(str(tmp_path), {"glob-regex": "*.zip"}, DiscoveryCache()))


def test_registry_lookup_and_input_normalization() -> None:
    registry = default_registry()
    registry.register("Forced", ForcedParser())

    assert registry.keys() == ["Glob", "Glob-regex", "Forced"]
    assert registry.get_parser_info("Glob").inputs.keys() == {"glob"}

    inputs = {"mode": "user value"}
    registry.normalize_inputs("Forced", inputs)
    assert inputs == {"mode": "fixed", "extra": ""}


def test_registry_reports_missing_parser() -> None:
    registry = ParserRegistry()

    with pytest.raises(ParserNotFoundError, match="Missing") as info:
        registry.get("Missing")

    assert info.value.parser_type == "Missing"
