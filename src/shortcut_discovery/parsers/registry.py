"""解析器注册表。

解析器在启动时以字符串标识注册，运行时按配置的 ``parser_type`` 查找。
``default_registry()`` 预先注册内置的 ``Glob`` 与 ``Glob-regex`` 解析器，
资源匹配也直接依赖这两个解析器。
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from shortcut_discovery.core.exceptions import ParserNotFoundError
from shortcut_discovery.parsers.base import DiscoveryParser, ParserInfo
from shortcut_discovery.parsers.glob_parser import GlobParser
from shortcut_discovery.parsers.glob_regex_parser import GlobRegexParser

GLOB_PARSER = "Glob"
GLOB_REGEX_PARSER = "Glob-regex"


class ParserRegistry:
    """解析器标识到 ``DiscoveryParser`` 的映射。"""

    def __init__(self) -> None:
        self.parsers: Dict[str, DiscoveryParser] = {}

    def register(self, key: str, parser: DiscoveryParser) -> None:
        """以 ``key`` 注册解析器，已存在时覆盖。"""

        self.parsers[key] = parser

    def keys(self) -> List[str]:
        return list(self.parsers)

    def __contains__(self, key: str) -> bool:
        return key in self.parsers

    def get(self, key: str) -> DiscoveryParser:
        """返回 ``key`` 对应的解析器，不存在时抛出 ``ParserNotFoundError``。"""

        try:
            return self.parsers[key]
        except KeyError:
            raise ParserNotFoundError(key) from None

    def get_parser_info(self, key: str) -> ParserInfo:
        return self.get(key).get_parser_info()

    def normalize_inputs(self, key: str, inputs: Dict[str, str]) -> Dict[str, str]:
        """就地补全输入项：强制值优先，未设置的输入默认为空字符串。"""

        info = self.get_parser_info(key)
        for name, declared in info.inputs.items():
            if declared.forced_input:
                inputs[name] = declared.forced_input
            elif inputs.get(name) is None:
                inputs[name] = ""
        return inputs


def default_registry() -> ParserRegistry:
    """创建预先注册了内置解析器的注册表。"""

    registry = ParserRegistry()
    registry.register(GLOB_PARSER, GlobParser())
    registry.register(GLOB_REGEX_PARSER, GlobRegexParser())
    return registry


def describe_parsers(registry: ParserRegistry) -> Mapping[str, ParserInfo]:
    return {key: registry.get_parser_info(key) for key in registry.keys()}
