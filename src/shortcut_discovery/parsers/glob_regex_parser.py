"""内置 ``Glob-regex`` 解析器：``${/regex/flags}`` 按 ``*`` 匹配，再用正则提取标题。"""

from __future__ import annotations

import logging
import re
from typing import Mapping

from shortcut_discovery.core.exceptions import ParserExecutionError
from shortcut_discovery.core.models import DiscoveredItem, DiscoveryResult
from shortcut_discovery.core.scanner import DiscoveryCache
from shortcut_discovery.parsers.base import DiscoveryParser, ParserInfo, ParserInput
from shortcut_discovery.parsers.token_glob import glob_with_capture

LOGGER = logging.getLogger(__name__)

REGEX_TOKEN = re.compile(r"\$\{/(.+)/([a-z]*)\}")


def compile_title_regex(body: str, flags: str) -> re.Pattern[str]:
    """编译标题正则，只识别 ``i`` 标志。"""

    try:
        return re.compile(body, re.IGNORECASE if "i" in flags else 0)
    except re.error as exc:
        raise ParserExecutionError(f"无效的标题正则 /{body}/: {exc}") from exc


def extract_title(regex: re.Pattern[str], text: str) -> str:
    """返回第一个非空捕获组，无捕获组时返回整体匹配；不匹配返回空字符串。"""

    found = regex.search(text)
    if found is None:
        return ""
    for group in found.groups():
        if group:
            return group
    return found.group(0)


class GlobRegexParser(DiscoveryParser):
    """按 glob 模式发现文件，再用 ``${/regex/}`` 从匹配部分中提取标题。"""

    input_name = "glob-regex"

    def get_parser_info(self) -> ParserInfo:
        return ParserInfo(
            title="Glob-regex",
            inputs={self.input_name: ParserInput(label="含 ${/regex/} 的 glob 模式")},
        )

    async def execute(self, directory: str, inputs: Mapping[str, str], cache: DiscoveryCache) -> DiscoveryResult:
        pattern = inputs.get(self.input_name) or ""
        token = REGEX_TOKEN.search(pattern)
        if token is None:
            raise ParserExecutionError(f"glob-regex 模式必须包含 ${{/regex/}}: {pattern!r}")

        regex = compile_title_regex(token.group(1), token.group(2))
        prefix, suffix = pattern[:token.start()], pattern[token.end():]

        result = DiscoveryResult()
        for file_path, segment in await glob_with_capture(directory, prefix, suffix, cache):
            title = extract_title(regex, segment) if segment else ""
            if title:
                result.success.append(DiscoveredItem(file_path=file_path, extracted_title=title))
            else:
                result.failed.append(file_path)

        LOGGER.debug("Glob-regex %r: 成功 %d，失败 %d", pattern, len(result.success), len(result.failed))
        return result
