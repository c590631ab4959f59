"""解析器基础接口。

每个解析器提供两个操作：

- ``get_parser_info()``：声明解析器接受的输入项，可附带强制值，强制值覆盖配置中的取值。
- ``execute(directory, inputs, cache)``：异步扫描 ``directory`` 并返回 ``DiscoveryResult``。
  所有文件系统扫描都必须经过本次运行共享的 ``DiscoveryCache``。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from shortcut_discovery.core.models import DiscoveryResult
from shortcut_discovery.core.scanner import DiscoveryCache


@dataclass(frozen=True, slots=True)
class ParserInput:
    """单个输入项的声明。"""

    label: str = ""
    forced_input: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ParserInfo:
    """``get_parser_info`` 的返回值。"""

    title: str
    inputs: Dict[str, ParserInput] = field(default_factory=dict)


class DiscoveryParser(ABC):
    """发现解析器抽象基类。"""

    @abstractmethod
    def get_parser_info(self) -> ParserInfo:
        """描述解析器及其输入项。"""

    @abstractmethod
    async def execute(
        self,
        directory: str,
        inputs: Mapping[str, str],
        cache: DiscoveryCache,
    ) -> DiscoveryResult:
        """扫描 ``directory`` 下的文件。

        相对路径的模式以 ``directory`` 为基准解析。返回顺序稳定的成功项，
        以及无法提取标题的原始输入。
        """
