"""带捕获的 glob：模式中的一个变量按 ``*`` 匹配，并取回该段实际匹配到的文本。"""

from __future__ import annotations

import os
import re
from typing import List, Optional, Tuple

from shortcut_discovery.core.scanner import DiscoveryCache, GlobOptions, glob_files, resolve_pattern, to_posix

# 路径规范化不会改动的占位符。
_MARK = "<capture>"

# 标题提取需要匹配未经 realpath 处理的路径。
CAPTURE_GLOB_OPTIONS = GlobOptions(realpath=False)


def glob_to_regex(glob: str) -> str:
    """将 glob 片段转换为正则片段，``*``/``?`` 不跨越 ``/``。"""

    parts: List[str] = []
    index = 0
    while index < len(glob):
        char = glob[index]
        if glob.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
        elif glob.startswith("**", index):
            parts.append(".*")
            index += 2
        elif char == "*":
            parts.append("[^/]*")
            index += 1
        elif char == "?":
            parts.append("[^/]")
            index += 1
        elif char == "[":
            close = glob.find("]", index + 2)
            if close == -1:
                parts.append(re.escape(char))
                index += 1
                continue
            body = glob[index + 1:close]
            if body.startswith("!"):
                body = "^" + body[1:]
            parts.append("[" + body.replace("\\", "\\\\") + "]")
            index = close + 1
        else:
            parts.append(re.escape(char))
            index += 1
    return "".join(parts)


async def glob_with_capture(
    directory: str,
    prefix: str,
    suffix: str,
    cache: DiscoveryCache,
) -> List[Tuple[str, Optional[str]]]:
    """匹配 ``prefix*suffix``，返回 ``(真实路径, 星号匹配的文本)`` 列表。

    捕获失败时第二项为 ``None``。
    """

    pattern = resolve_pattern(directory, f"{prefix}{_MARK}{suffix}")
    head, tail = pattern.split(_MARK, 1)
    matches = await glob_files(f"{head}*{tail}", cache, CAPTURE_GLOB_OPTIONS)

    regex = re.compile(
        "^" + glob_to_regex(head) + "([^/]*)" + glob_to_regex(tail) + "$",
        re.IGNORECASE,
    )

    captured: List[Tuple[str, Optional[str]]] = []
    for match in matches:
        found = regex.match(match)
        real = to_posix(os.path.realpath(match))
        captured.append((real, found.group(1) if found else None))
    return captured
