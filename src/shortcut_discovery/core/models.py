"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(slots=True)
class DiscoveredItem:
    """解析器发现的单个文件。"""

    file_path: str
    extracted_title: str
    # 模糊匹配启用后由匹配器写入。
    fuzzy_title: Optional[str] = None


@dataclass(slots=True)
class DiscoveryResult:
    """解析器对一个配置的输出：成功项与无法解析的原始输入。"""

    success: List[DiscoveredItem] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass(slots=True)
class UserAccount:
    """系统中的 Steam 账户。"""

    name: str
    account_id: str


@dataclass(slots=True)
class AccountFilterResult:
    """账户筛选结果。"""

    found: List[UserAccount] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


@dataclass(slots=True)
class OutputFile:
    """单个发现文件的完整输出记录。"""

    executable_location: str
    start_in_directory: str
    extracted_title: str
    fuzzy_title: str
    final_title: str
    fuzzy_final_title: str
    file_path: str
    argument_string: str = ""
    resolved_local_images: List[str] = field(default_factory=list)
    local_images: List[str] = field(default_factory=list)
    resolved_local_icons: List[str] = field(default_factory=list)
    local_icons: List[str] = field(default_factory=list)
    online_image_queries: List[str] = field(default_factory=list)


@dataclass(slots=True)
class OutputConfiguration:
    """单个配置的聚合输出。"""

    steam_categories: List[str]
    steam_directory: str
    append_args_to_executable: bool
    image_providers: List[str]
    found_user_accounts: List[UserAccount] = field(default_factory=list)
    missing_user_accounts: List[str] = field(default_factory=list)
    files: List[OutputFile] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass(slots=True)
class RunResult:
    """一次流水线运行的产出，``results`` 与输入配置按索引对齐。"""

    results: List[OutputConfiguration]
    no_accounts_found: bool

    def all_files(self) -> list[OutputFile]:
        """按配置顺序展开所有输出文件。"""

        return [item for config in self.results for item in config.files]
