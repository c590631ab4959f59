"""标题模糊匹配：清洗提取的标题，并可选地对齐到已知标题列表。"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol, Sequence

from thefuzz import fuzz, process

from shortcut_discovery.core.models import DiscoveryResult

LOGGER = logging.getLogger(__name__)

_BRACKETS = re.compile(r"\s*(?:\([^()]*\)|\[[^\[\]]*\]|\{[^{}]*\})")
_SPECIAL_CHARACTERS = re.compile(r"[™®©:;,.!?'\"_~|]")
_WHITESPACE = re.compile(r"\s+")


class FuzzyMatcher(Protocol):
    """模糊匹配接口。"""

    def fuzzy_match_parsed_data(
        self, data: DiscoveryResult, remove_characters: bool, remove_brackets: bool
    ) -> None:
        ...

    def fuzzy_match_string(self, title: str, remove_characters: bool, remove_brackets: bool) -> str:
        ...


class TitleFuzzyMatcher:
    """默认的模糊匹配实现。

    先按配置去除括号内容与特殊字符；提供 ``known_titles`` 时，
    再用 thefuzz 找到相似度不低于 ``score_cutoff`` 的已知标题。
    """

    def __init__(self, known_titles: Sequence[str] = (), score_cutoff: int = 90) -> None:
        self.known_titles = list(known_titles)
        self.score_cutoff = score_cutoff

    def fuzzy_match_parsed_data(
        self, data: DiscoveryResult, remove_characters: bool, remove_brackets: bool
    ) -> None:
        """就地为每个成功项写入 ``fuzzy_title``。"""

        for item in data.success:
            item.fuzzy_title = self.fuzzy_match_string(item.extracted_title, remove_characters, remove_brackets)

    def fuzzy_match_string(self, title: str, remove_characters: bool, remove_brackets: bool) -> str:
        normalized = normalize_title(title, remove_characters, remove_brackets)
        matched = self._closest_known_title(normalized)
        return matched if matched is not None else normalized

    def _closest_known_title(self, title: str) -> Optional[str]:
        if not self.known_titles or not title:
            return None
        best = process.extractOne(
            title,
            self.known_titles,
            scorer=fuzz.token_sort_ratio,
            score_cutoff=self.score_cutoff,
        )
        if best is None:
            return None
        LOGGER.debug("模糊匹配 %r -> %r (%d)", title, best[0], best[1])
        return best[0]


def normalize_title(title: str, remove_characters: bool, remove_brackets: bool) -> str:
    text = title
    if remove_brackets:
        # 反复处理以去除嵌套括号。
        previous = None
        while previous != text:
            previous = text
            text = _BRACKETS.sub("", text)
    if remove_characters:
        text = _SPECIAL_CHARACTERS.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()
