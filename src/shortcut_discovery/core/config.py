"""扫描任务的配置模型。"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from shortcut_discovery.core.exceptions import InvalidConfigurationError


@dataclass(slots=True)
class UserAccountsConfig:
    """Steam 账户筛选配置。"""

    specified_accounts: str = ""
    skip_with_missing_data_dir: bool = True
    use_credentials: bool = True


@dataclass(slots=True)
class FuzzyMatchConfig:
    """模糊匹配相关配置。"""

    use: bool = True
    remove_characters: bool = True
    remove_brackets: bool = True


@dataclass(slots=True)
class Configuration:
    """单个扫描任务的配置集合。

    流水线开始后只读，唯一例外是 ``parser_inputs`` 的默认值/强制值归一化。
    """

    parser_type: str
    rom_directory: str
    steam_directory: str = ""
    parser_inputs: Dict[str, str] = field(default_factory=dict)
    user_accounts: UserAccountsConfig = field(default_factory=UserAccountsConfig)
    fuzzy_match: FuzzyMatchConfig = field(default_factory=FuzzyMatchConfig)
    title_modifier: str = "${title}"
    executable_args: str = ""
    executable_location: str = ""
    start_in_directory: str = ""
    local_images: str = ""
    local_icons: str = ""
    online_image_queries: str = "${${fuzzyTitle}}"
    steam_category: str = ""
    append_args_to_executable: bool = True
    image_providers: List[str] = field(default_factory=list)


@dataclass(slots=True)
class RunSettings:
    """一次流水线运行的全局设置。"""

    # 单个解析器执行的超时（秒），None 表示不限制。
    # 超时只终止等待：已在工作线程中运行的目录扫描无法被中断，
    # asyncio.run 退出时仍会等待这些线程结束。
    parser_timeout: Optional[float] = None
    # 模糊匹配时用于对齐的已知标题，为空时只做清洗。
    known_titles: List[str] = field(default_factory=list)
    fuzzy_score_cutoff: int = 90


_NESTED = {
    "user_accounts": UserAccountsConfig,
    "fuzzy_match": FuzzyMatchConfig,
}

_PATH_FIELDS = ("rom_directory", "steam_directory", "executable_location", "start_in_directory")


def load_configurations(path: Path) -> list[Configuration]:
    """从 JSON 文件读取配置列表。

    文件内容可以是配置对象数组，也可以是 ``{"configurations": [...]}``。
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except OSError as exc:
        raise InvalidConfigurationError(f"无法读取配置文件: {path}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidConfigurationError(f"配置文件不是合法的 JSON: {path}: {exc}") from exc

    if isinstance(payload, dict):
        payload = payload.get("configurations")
    if not isinstance(payload, list):
        raise InvalidConfigurationError("配置文件必须包含配置对象列表")

    return [configuration_from_dict(item, index) for index, item in enumerate(payload)]


def configuration_from_dict(data: Any, index: int = 0) -> Configuration:
    """将单个 JSON 对象转换为 ``Configuration``。"""

    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"第 {index} 个配置必须是对象")

    known = {f.name: f for f in dataclasses.fields(Configuration)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise InvalidConfigurationError(f"第 {index} 个配置包含未知字段: {', '.join(unknown)}")

    for required in ("parser_type", "rom_directory"):
        if not isinstance(data.get(required), str) or not data[required]:
            raise InvalidConfigurationError(f"第 {index} 个配置缺少字段: {required}")

    kwargs: dict[str, Any] = {}
    for name, value in data.items():
        if name in _NESTED:
            kwargs[name] = _build_nested(_NESTED[name], value, index, name)
        elif name == "parser_inputs":
            if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
                raise InvalidConfigurationError(f"第 {index} 个配置的 parser_inputs 必须是字符串映射")
            kwargs[name] = dict(value)
        elif name == "image_providers":
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise InvalidConfigurationError(f"第 {index} 个配置的 image_providers 必须是字符串列表")
            kwargs[name] = list(value)
        elif name == "append_args_to_executable":
            if not isinstance(value, bool):
                raise InvalidConfigurationError(f"第 {index} 个配置的 {name} 必须是布尔值")
            kwargs[name] = value
        else:
            if not isinstance(value, str):
                raise InvalidConfigurationError(f"第 {index} 个配置的 {name} 必须是字符串")
            kwargs[name] = _expand_user(value) if name in _PATH_FIELDS else value

    return Configuration(**kwargs)


def _build_nested(cls: type, value: Any, index: int, name: str) -> Any:
    if not isinstance(value, dict):
        raise InvalidConfigurationError(f"第 {index} 个配置的 {name} 必须是对象")

    known = {f.name: f for f in dataclasses.fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, item in value.items():
        if key not in known:
            raise InvalidConfigurationError(f"第 {index} 个配置的 {name} 包含未知字段: {key}")
        expected = type(getattr(cls(), key))
        if not isinstance(item, expected):
            raise InvalidConfigurationError(f"第 {index} 个配置的 {name}.{key} 类型错误")
        kwargs[key] = item
    return cls(**kwargs)


def _expand_user(value: str) -> str:
    if value.startswith("~"):
        return str(Path(value).expanduser())
    return value


def load_known_titles(path: Path) -> list[str]:
    """读取已知标题列表：每行一个标题，忽略空行与 ``#`` 开头的注释行。"""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidConfigurationError(f"无法读取标题列表: {path}") from exc

    titles = [line.strip() for line in text.splitlines()]
    return list(dict.fromkeys(title for title in titles if title and not title.startswith("#")))
