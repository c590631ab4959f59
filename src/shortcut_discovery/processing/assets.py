"""本地图片/图标字段的 glob 解析。

字段值有两种模式：

- 普通模式：模板展开后直接作为 glob 匹配。
- 可展开集合模式 ``$(${TOKEN}|secondary)$``：主变量交给内置解析器匹配，
  只保留标题与当前文件一致的结果；可选的 ``secondary`` 按普通 glob 匹配后取并集。
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import quote

from shortcut_discovery.core.config import Configuration
from shortcut_discovery.core.models import OutputFile
from shortcut_discovery.core.scanner import DiscoveryCache, glob_files, resolve_pattern, to_posix
from shortcut_discovery.parsers.registry import GLOB_PARSER, GLOB_REGEX_PARSER, ParserRegistry
from shortcut_discovery.processing.fuzzy import FuzzyMatcher
from shortcut_discovery.templating.variables import (
    DEFAULT_LEFT,
    DEFAULT_RIGHT,
    find_closing,
    make_variable_context,
    replace_variables,
)

LOGGER = logging.getLogger(__name__)

SET_OPEN = "$("
SET_CLOSE = ")$"
SET_SEPARATOR = "|"
PLACEHOLDER = "$()$"

# 资源模式只展开一轮变量。
ASSET_PATTERN_DEPTH = 0

IMAGE_EXTENSIONS = {".png", ".tga", ".jpg", ".jpeg"}

_TITLE_TOKEN = re.compile(r"\$\{title\}", re.IGNORECASE)
_URI_SAFE = "/:;,?@&=+$-_.!~*'()#"


@dataclass(frozen=True, slots=True)
class ExpandableSet:
    """``$(${primary}|secondary)$`` 在字段值中的位置与内容。"""

    start: int
    end: int
    primary: str
    secondary: Optional[str] = None


@dataclass(slots=True)
class FieldGlobs:
    """每个输出文件使用的模式与匹配到的文件，按文件索引对齐。"""

    resolved_globs: List[List[str]] = field(default_factory=list)
    resolved_files: List[List[str]] = field(default_factory=list)


def parse_expandable_set(text: str) -> Optional[ExpandableSet]:
    """查找第一个可展开集合，找不到返回 ``None``。

    主变量必须紧跟在 ``$(`` 之后；``secondary`` 延伸到最后一个 ``)$``，且不能为空。
    """

    search = 0
    while True:
        start = text.find(SET_OPEN, search)
        if start == -1:
            return None
        found = _parse_set_at(text, start)
        if found is not None:
            return found
        search = start + len(SET_OPEN)


def _parse_set_at(text: str, start: int) -> Optional[ExpandableSet]:
    token_start = start + len(SET_OPEN)
    if not text.startswith(DEFAULT_LEFT, token_start):
        return None

    # 正则主变量可能含有 ``{n}`` 量词：配对位置之后不是 ``|``/``)$`` 时，继续尝试后面的 ``}``。
    close = find_closing(text, token_start)
    if close == -1:
        close = text.find(DEFAULT_RIGHT, token_start + len(DEFAULT_LEFT))
    while close != -1:
        found = _set_ending_at(text, start, token_start, close)
        if found is not None:
            return found
        close = text.find(DEFAULT_RIGHT, close + 1)
    return None


def _set_ending_at(text: str, start: int, token_start: int, close: int) -> Optional[ExpandableSet]:
    primary = text[token_start:close + 1]
    rest = close + 1
    if text.startswith(SET_CLOSE, rest):
        return ExpandableSet(start=start, end=rest + len(SET_CLOSE), primary=primary)
    if text.startswith(SET_SEPARATOR, rest):
        end = text.rfind(SET_CLOSE)
        if end > rest + 1:
            return ExpandableSet(
                start=start,
                end=end + len(SET_CLOSE),
                primary=primary,
                secondary=text[rest + 1:end],
            )
    return None


async def resolve_field_globs(
    field_value: str,
    config: Configuration,
    files: Sequence[OutputFile],
    registry: ParserRegistry,
    fuzzy_matcher: FuzzyMatcher,
    cache: DiscoveryCache,
) -> FieldGlobs:
    """为每个输出文件解析字段模式并匹配文件，文件之间并发执行。"""

    result = FieldGlobs(
        resolved_globs=[[] for _ in files],
        resolved_files=[[] for _ in files],
    )
    if not field_value:
        return result

    expandable = parse_expandable_set(field_value)

    async def resolve_one(index: int, output_file: OutputFile) -> None:
        if expandable is None:
            pattern = _literal_pattern(field_value, config, output_file)
            result.resolved_globs[index].append(pattern)
            result.resolved_files[index] = await glob_files(pattern, cache)
        else:
            result.resolved_files[index] = await _resolve_expandable(
                field_value, expandable, config, output_file, registry, fuzzy_matcher, cache,
                result.resolved_globs[index],
            )

    await asyncio.gather(*(resolve_one(index, item) for index, item in enumerate(files)))
    return result


def _literal_pattern(value: str, config: Configuration, output_file: OutputFile) -> str:
    context = make_variable_context(config, output_file)
    return resolve_pattern(config.rom_directory, replace_variables(value, context, ASSET_PATTERN_DEPTH))


async def _resolve_expandable(
    field_value: str,
    expandable: ExpandableSet,
    config: Configuration,
    output_file: OutputFile,
    registry: ParserRegistry,
    fuzzy_matcher: FuzzyMatcher,
    cache: DiscoveryCache,
    resolved_globs: List[str],
) -> List[str]:
    head = field_value[:expandable.start]
    tail = field_value[expandable.end:]
    context = make_variable_context(config, output_file)

    parser_match = replace_variables(f"{head}{PLACEHOLDER}{tail}", context, ASSET_PATTERN_DEPTH)
    parser_match = resolve_pattern(config.rom_directory, parser_match.replace(PLACEHOLDER, expandable.primary, 1))
    resolved_globs.append(parser_match)

    if _TITLE_TOKEN.search(expandable.primary):
        parser_key, input_name = GLOB_PARSER, "glob"
    else:
        parser_key, input_name = GLOB_REGEX_PARSER, "glob-regex"

    data = await registry.get(parser_key).execute(config.rom_directory, {input_name: parser_match}, cache)

    fuzzy = config.fuzzy_match
    matched: List[str] = []
    for item in data.success:
        if fuzzy.use:
            title = fuzzy_matcher.fuzzy_match_string(item.extracted_title, fuzzy.remove_characters, fuzzy.remove_brackets)
            if title == output_file.fuzzy_title:
                matched.append(item.file_path)
        elif item.extracted_title == output_file.extracted_title:
            matched.append(item.file_path)

    if expandable.secondary is not None:
        secondary = replace_variables(f"{head}{expandable.secondary}{tail}", context, ASSET_PATTERN_DEPTH)
        secondary = resolve_pattern(config.rom_directory, secondary)
        resolved_globs.append(secondary)
        matched.extend(await glob_files(secondary, cache))

    return list(dict.fromkeys(matched))


def filter_local_images(paths: Sequence[str]) -> List[str]:
    """只保留 png/tga/jpg/jpeg 图片，并转换为 ``file://`` URI。"""

    return [to_file_uri(path) for path in paths if os.path.splitext(path)[1].lower() in IMAGE_EXTENSIONS]


def to_file_uri(path: str) -> str:
    posix = to_posix(path)
    if not posix.startswith("/"):
        posix = "/" + posix
    return "file://" + quote(posix, safe=_URI_SAFE)
