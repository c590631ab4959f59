"""Steam 账户发现与筛选。"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import stat
from pathlib import Path
from typing import List, Protocol, Sequence

from shortcut_discovery.core.models import AccountFilterResult, UserAccount

LOGGER = logging.getLogger(__name__)

# SteamID64 与 32 位账户 ID 之间的固定偏移。
STEAM_ID64_BASE = 76561197960265728

_LOGIN_BLOCK = re.compile(r'"(\d{17})"\s*\{(.*?)\}', re.DOTALL)
_ACCOUNT_NAME = re.compile(r'"AccountName"\s*"([^"]*)"', re.IGNORECASE)


class AccountProvider(Protocol):
    """账户发现接口。"""

    async def get_available_logins(self, directory: str, use_credentials: bool) -> List[UserAccount]:
        ...


class SteamAccountProvider:
    """从 Steam 安装目录读取账户。

    ``use_credentials`` 为真时读取 ``config/loginusers.vdf`` 中的账户名，
    否则列出 ``userdata`` 下的数字目录并以 ID 作为名称。
    """

    async def get_available_logins(self, directory: str, use_credentials: bool) -> List[UserAccount]:
        return await asyncio.to_thread(self._read_logins, directory, use_credentials)

    def _read_logins(self, directory: str, use_credentials: bool) -> List[UserAccount]:
        root = Path(directory)
        if use_credentials:
            return read_login_users(root / "config" / "loginusers.vdf")

        userdata = root / "userdata"
        if not directory_exists(str(userdata)):
            return []
        return [
            UserAccount(name=entry.name, account_id=entry.name)
            for entry in sorted(userdata.iterdir(), key=lambda p: p.name)
            if entry.is_dir() and entry.name.isdigit() and entry.name != "0"
        ]


def read_login_users(path: Path) -> List[UserAccount]:
    """解析 ``loginusers.vdf``，文件不存在时返回空列表。"""

    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        LOGGER.debug("未找到账户文件: %s", path)
        return []

    accounts: List[UserAccount] = []
    for block in _LOGIN_BLOCK.finditer(text):
        name = _ACCOUNT_NAME.search(block.group(2))
        if name is None:
            continue
        account_id = str(int(block.group(1)) - STEAM_ID64_BASE)
        accounts.append(UserAccount(name=name.group(1), account_id=account_id))
    return accounts


def directory_exists(path: str) -> bool:
    """检查目录是否存在，任何文件系统错误都视为不存在。"""

    try:
        return stat.S_ISDIR(os.stat(path).st_mode)
    except (OSError, ValueError):
        return False


def filter_user_accounts(
    accounts: Sequence[UserAccount],
    name_filter: Sequence[str],
    steam_directory: str,
    skip_with_missing_dir: bool,
) -> AccountFilterResult:
    """按名称筛选账户。

    ``name_filter`` 为空时匹配全部账户。找不到的名称记入 ``missing``；
    开启 ``skip_with_missing_dir`` 时缺少 ``userdata/<id>`` 目录的账户被直接跳过。
    """

    result = AccountFilterResult()
    names = list(name_filter) or [account.name for account in accounts]

    for name in names:
        account = next((item for item in accounts if item.name == name), None)
        if account is None:
            result.missing.append(name)
            continue
        if skip_with_missing_dir:
            account_path = os.path.join(steam_directory, "userdata", account.account_id)
            if not directory_exists(account_path):
                LOGGER.debug("账户目录不存在，跳过: %s", account_path)
                continue
        result.found.append(account)

    return result
