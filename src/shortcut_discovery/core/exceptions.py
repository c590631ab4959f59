"""项目内使用的自定义异常定义。"""


class ShortcutDiscoveryError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ShortcutDiscoveryError):
    """配置不合法时抛出。"""


class ParserNotFoundError(InvalidConfigurationError):
    """配置引用了未注册的解析器。"""

    def __init__(self, parser_type: str) -> None:
        super().__init__(f"解析器不存在: {parser_type}")
        self.parser_type = parser_type


class DiscoveryError(ShortcutDiscoveryError):
    """文件系统扫描失败。"""


class ParserExecutionError(DiscoveryError):
    """解析器执行失败或超时。"""
