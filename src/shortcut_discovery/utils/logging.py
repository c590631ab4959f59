"""日志初始化。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s"


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """初始化项目日志配置，可选地同时写入日志文件。"""

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
