"""模板变量解析：``${...}`` 语法的分词、变量求值与有限深度的递归展开。"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from shortcut_discovery.core.config import Configuration
    from shortcut_discovery.core.models import OutputFile

DEFAULT_LEFT = "${"
DEFAULT_RIGHT = "}"


def find_closing(text: str, start: int, left: str = DEFAULT_LEFT, right: str = DEFAULT_RIGHT) -> int:
    """返回 ``start`` 处左定界符对应的右定界符位置，未闭合返回 -1。"""

    depth = 1
    index = start + len(left)
    while index < len(text):
        if text.startswith(left, index):
            depth += 1
            index += len(left)
        elif text.startswith(right, index):
            depth -= 1
            if depth == 0:
                return index
            index += len(right)
        else:
            index += 1
    return -1


class VariableParser:
    """按左右定界符切分模板字符串。

    定界符需成对出现：``${a${b}}`` 是一个顶层变量，内容为 ``a${b}``。
    未闭合的左定界符按普通文本处理。
    """

    def __init__(self, left: str = DEFAULT_LEFT, right: str = DEFAULT_RIGHT) -> None:
        if not left or not right:
            raise ValueError("定界符不能为空")
        self.left = left
        self.right = right
        self.max_depth = 0
        self._input = ""
        self._segments: List[Tuple[bool, str]] = []

    def set_input(self, text: str) -> "VariableParser":
        self._input = text or ""
        self._segments = []
        return self

    def parse(self, max_depth: int = 0) -> bool:
        """切分输入，返回是否找到至少一个变量。

        ``max_depth`` 为求值时允许的额外展开轮数，由 ``replace_variables`` 使用。
        """

        self.max_depth = max(0, max_depth)
        text = self._input
        segments: List[Tuple[bool, str]] = []
        position = 0
        literal_start = 0

        while True:
            start = text.find(self.left, position)
            if start == -1:
                break
            end = find_closing(text, start, self.left, self.right)
            if end == -1:
                position = start + len(self.left)
                continue
            if start > literal_start:
                segments.append((False, text[literal_start:start]))
            segments.append((True, text[start + len(self.left):end]))
            position = literal_start = end + len(self.right)

        if literal_start < len(text):
            segments.append((False, text[literal_start:]))

        self._segments = segments
        return any(is_token for is_token, _ in segments)

    def get_contents(self, unique_only: bool = False) -> List[str]:
        """按出现顺序返回变量内容。"""

        contents = [value for is_token, value in self._segments if is_token]
        if unique_only:
            return list(dict.fromkeys(contents))
        return contents

    def replace_variables(self, values: Sequence[str]) -> str:
        """按顺序用 ``values`` 替换每个变量，数量须与 ``get_contents()`` 一致。"""

        tokens = sum(1 for is_token, _ in self._segments if is_token)
        if len(values) != tokens:
            raise ValueError(f"需要 {tokens} 个替换值，实际为 {len(values)} 个")

        parts: List[str] = []
        remaining = iter(values)
        for is_token, value in self._segments:
            parts.append(next(remaining) if is_token else value)
        return "".join(parts)


@dataclass(slots=True)
class VariableContext:
    """单个输出文件的变量取值来源。"""

    executable_location: str = ""
    start_in_directory: str = ""
    extracted_title: str = ""
    fuzzy_title: str = ""
    final_title: str = ""
    fuzzy_final_title: str = ""
    file_path: str = ""
    rom_directory: str = ""
    steam_directory: str = ""


def make_variable_context(config: "Configuration", output_file: "OutputFile") -> VariableContext:
    """由配置与输出文件构造变量上下文。"""

    return VariableContext(
        executable_location=output_file.executable_location,
        start_in_directory=output_file.start_in_directory,
        extracted_title=output_file.extracted_title,
        fuzzy_title=output_file.fuzzy_title,
        final_title=output_file.final_title,
        fuzzy_final_title=output_file.fuzzy_final_title,
        file_path=output_file.file_path,
        rom_directory=config.rom_directory,
        steam_directory=config.steam_directory,
    )


def _basename(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def _extension(path: str) -> str:
    return os.path.splitext(path)[1]


class VariableKind(Enum):
    """模板中可用的变量名（大写规范形式）。"""

    SEP = "/"
    EXEDIR = "EXEDIR"
    EXEEXT = "EXEEXT"
    EXENAME = "EXENAME"
    EXEPATH = "EXEPATH"
    FILEDIR = "FILEDIR"
    FILEEXT = "FILEEXT"
    FILENAME = "FILENAME"
    FILEPATH = "FILEPATH"
    FINALTITLE = "FINALTITLE"
    FUZZYFINALTITLE = "FUZZYFINALTITLE"
    FUZZYTITLE = "FUZZYTITLE"
    TITLE = "TITLE"
    ROMDIR = "ROMDIR"
    STARTINDIR = "STARTINDIR"
    STEAMDIR = "STEAMDIR"

    @classmethod
    def lookup(cls, name: str) -> Optional["VariableKind"]:
        try:
            return cls(name.upper())
        except ValueError:
            return None


_RESOLVERS: Dict[VariableKind, Callable[[VariableContext], str]] = {
    VariableKind.SEP: lambda ctx: os.sep,
    VariableKind.EXEDIR: lambda ctx: os.path.dirname(ctx.executable_location),
    VariableKind.EXEEXT: lambda ctx: _extension(ctx.executable_location),
    VariableKind.EXENAME: lambda ctx: _basename(ctx.executable_location),
    VariableKind.EXEPATH: lambda ctx: ctx.executable_location,
    VariableKind.FILEDIR: lambda ctx: os.path.dirname(ctx.file_path),
    VariableKind.FILEEXT: lambda ctx: _extension(ctx.file_path),
    VariableKind.FILENAME: lambda ctx: _basename(ctx.file_path),
    VariableKind.FILEPATH: lambda ctx: ctx.file_path,
    VariableKind.FINALTITLE: lambda ctx: ctx.final_title,
    VariableKind.FUZZYFINALTITLE: lambda ctx: ctx.fuzzy_final_title,
    VariableKind.FUZZYTITLE: lambda ctx: ctx.fuzzy_title,
    VariableKind.TITLE: lambda ctx: ctx.extracted_title,
    VariableKind.ROMDIR: lambda ctx: ctx.rom_directory,
    VariableKind.STARTINDIR: lambda ctx: ctx.start_in_directory,
    VariableKind.STEAMDIR: lambda ctx: ctx.steam_directory,
}


def resolve_variable(name: str, context: VariableContext) -> Optional[str]:
    """返回变量值；无法识别的变量名返回 ``None``。"""

    kind = VariableKind.lookup(name)
    if kind is None:
        return None
    return _RESOLVERS[kind](context)


def replace_variables(text: str, context: VariableContext, depth: int = 0) -> str:
    """展开模板中的所有变量。

    嵌套变量由内向外求值；无法识别的变量输出其字面名称。变量值本身含有变量时，
    最多再展开 ``depth`` 轮。
    """

    parser = VariableParser()
    if not parser.set_input(text).parse(depth):
        return text
    values = [_resolve_token(name, context, parser.max_depth) for name in parser.get_contents()]
    return parser.replace_variables(values)


def _resolve_token(name: str, context: VariableContext, depth: int) -> str:
    if DEFAULT_LEFT in name:
        name = replace_variables(name, context, depth)

    value = resolve_variable(name, context)
    if value is None:
        return name
    if depth > 0:
        return replace_variables(value, context, depth - 1)
    return value


def variable_string_to_list(text: str, unique_only: bool = False) -> List[str]:
    """把 ``${a}${b}`` 形式的字符串转换为 ``["a", "b"]``，忽略空项。"""

    parser = VariableParser()
    if not parser.set_input(text).parse():
        return []
    contents = [item for item in parser.get_contents() if item != ""]
    if unique_only:
        return list(dict.fromkeys(contents))
    return contents


def apply_title_modifier(template: str, title: str) -> str:
    """只替换 ``${title}``（不区分大小写），其余变量原样保留。"""

    parser = VariableParser()
    if not parser.set_input(template).parse():
        return template
    values = [
        title if name.upper() == VariableKind.TITLE.value else f"{parser.left}{name}{parser.right}"
        for name in parser.get_contents()
    ]
    return parser.replace_variables(values)
