"""文件扫描：大小写不敏感的 glob 匹配与运行期共享的扫描缓存。"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from functools import partial
from typing import Awaitable, Callable, Dict, Hashable, Iterator, List, Optional, Sequence

from shortcut_discovery.core.exceptions import DiscoveryError

LOGGER = logging.getLogger(__name__)

_MAGIC = re.compile(r"[*?[]")
_DRIVE_ROOT = re.compile(r"^[A-Za-z]:/")


@dataclass(frozen=True, slots=True)
class GlobOptions:
    """glob 匹配选项，同时作为缓存键的一部分。"""

    dot: bool = True
    nocase: bool = True
    realpath: bool = True


DEFAULT_GLOB_OPTIONS = GlobOptions()


class DiscoveryCache:
    """单次运行内共享的扫描缓存。

    条目保存为 ``asyncio`` future，相同键的并发请求只触发一次扫描。
    缓存只在事件循环线程上读写，不可跨运行复用。
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, "asyncio.Future[List[str]]"] = {}
        self.scans = 0
        self.hits = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def clear(self) -> None:
        self._entries.clear()
        self.scans = 0
        self.hits = 0

    async def get_or_scan(self, key: Hashable, scan: Callable[[], Awaitable[List[str]]]) -> List[str]:
        """返回键对应的扫描结果，未命中时执行 ``scan`` 并缓存。"""

        entry = self._entries.get(key)
        if entry is None:
            self.scans += 1
            LOGGER.debug("扫描缓存未命中: %s", key)
            entry = asyncio.ensure_future(scan())
            self._entries[key] = entry
        else:
            self.hits += 1
            LOGGER.debug("扫描缓存命中: %s", key)
        result = await asyncio.shield(entry)
        return list(result)


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def resolve_pattern(root: str, pattern: str) -> str:
    """将模式解析为以 ``root`` 为基准的绝对路径，分隔符统一为 ``/``。"""

    return to_posix(os.path.abspath(os.path.join(root, pattern)))


async def glob_files(
    pattern: str,
    cache: DiscoveryCache,
    options: GlobOptions = DEFAULT_GLOB_OPTIONS,
    cwd: Optional[str] = None,
) -> List[str]:
    """通过共享缓存执行 glob，阻塞的目录遍历在工作线程中完成。"""

    absolute = resolve_pattern(cwd, pattern) if cwd else to_posix(pattern)
    key = ("glob", absolute, options)
    return await cache.get_or_scan(key, partial(asyncio.to_thread, scan_glob, absolute, options))


def scan_glob(pattern: str, options: GlobOptions = DEFAULT_GLOB_OPTIONS) -> List[str]:
    """同步执行 glob 匹配，支持 ``*``、``?``、``[...]`` 与 ``**``。

    不存在的目录视为无匹配，其他文件系统错误抛出 ``DiscoveryError``。
    """

    normalized = to_posix(pattern)
    root, segments = _split_pattern(normalized)

    # 字面量前缀按原样存在时直接跳过，无需逐级列目录。
    base = root
    index = 0
    while index < len(segments) and not _MAGIC.search(segments[index]):
        candidate = os.path.join(base, segments[index]) if base else segments[index]
        if options.nocase and not os.path.lexists(candidate):
            break
        base = candidate
        index += 1

    start = base or os.curdir
    matches = list(_walk(start, segments[index:], options))

    collected: list[str] = []
    seen: set[str] = set()
    for match in matches:
        if not os.path.lexists(match):
            continue
        resolved = os.path.realpath(match) if options.realpath else match
        resolved = to_posix(resolved)
        if resolved in seen:
            continue
        seen.add(resolved)
        collected.append(resolved)

    collected.sort(key=lambda x: (x.lower(), x))
    return collected


def _split_pattern(pattern: str) -> tuple[str, list[str]]:
    if pattern.startswith("/"):
        root, rest = "/", pattern[1:]
    elif _DRIVE_ROOT.match(pattern):
        root, rest = pattern[:3], pattern[3:]
    else:
        root, rest = "", pattern
    return root, [segment for segment in rest.split("/") if segment]


def _walk(directory: str, parts: Sequence[str], options: GlobOptions) -> Iterator[str]:
    if not parts:
        yield directory
        return

    head, tail = parts[0], parts[1:]

    if head == "**":
        yield from _walk(directory, tail, options)
        for entry in _list_dir(directory):
            if not options.dot and entry.name.startswith("."):
                continue
            if entry.is_dir(follow_symlinks=False):
                yield from _walk(entry.path, parts, options)
        return

    if head in (".", ".."):
        yield from _walk(os.path.join(directory, head), tail, options)
        return

    for entry in _list_dir(directory):
        name = entry.name
        if not options.dot and name.startswith(".") and not head.startswith("."):
            continue
        if not _matches(name, head, options.nocase):
            continue
        if tail:
            if entry.is_dir():
                yield from _walk(entry.path, tail, options)
        else:
            yield entry.path


def _matches(name: str, pattern: str, nocase: bool) -> bool:
    if nocase:
        return fnmatchcase(name.lower(), pattern.lower())
    return fnmatchcase(name, pattern)


def _list_dir(directory: str) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as iterator:
            return sorted(iterator, key=lambda entry: entry.name)
    except (FileNotFoundError, NotADirectoryError):
        return []
    except OSError as exc:
        raise DiscoveryError(f"无法读取目录: {directory}") from exc
