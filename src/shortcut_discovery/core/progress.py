"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class ProgressUpdate:
    """流水线阶段推进时发出的进度信息。

    ``stage`` 为刚完成的阶段名，``completed``/``total`` 按阶段计数。
    """

    total: int
    completed: int
    stage: str = ""
    message: Optional[str] = None
    status: str = "running"

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return min(1.0, self.completed / self.total)
