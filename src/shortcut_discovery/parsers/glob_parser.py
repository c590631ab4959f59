"""内置 ``Glob`` 解析器：模式中的 ``${title}`` 所匹配的文本即为标题。"""

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

TITLE_TOKEN = re.compile(r"\$\{title\}", re.IGNORECASE)


class GlobParser(DiscoveryParser):
    """按 glob 模式发现文件，标题取自 ``${title}`` 的匹配部分。"""

    input_name = "glob"

    def get_parser_info(self) -> ParserInfo:
        return ParserInfo(
            title="Glob",
            inputs={self.input_name: ParserInput(label="含 ${title} 的 glob 模式")},
        )

    async def execute(self, directory: str, inputs: Mapping[str, str], cache: DiscoveryCache) -> DiscoveryResult:
        pattern = inputs.get(self.input_name) or ""
        parts = TITLE_TOKEN.split(pattern)
        if len(parts) != 2:
            raise ParserExecutionError(f"glob 模式必须且只能包含一个 ${{title}}: {pattern!r}")

        result = DiscoveryResult()
        for file_path, title in await glob_with_capture(directory, parts[0], parts[1], cache):
            if title:
                result.success.append(DiscoveredItem(file_path=file_path, extracted_title=title))
            else:
                result.failed.append(file_path)

        LOGGER.debug("Glob %r: 成功 %d，失败 %d", pattern, len(result.success), len(result.failed))
        return result
