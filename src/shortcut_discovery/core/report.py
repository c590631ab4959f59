"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from shortcut_discovery.core.models import OutputConfiguration

HEADER = [
    "configuration",
    "final_title",
    "fuzzy_title",
    "executable_location",
    "start_in_directory",
    "argument_string",
    "local_images",
    "local_icons",
    "steam_categories",
]


def write_csv_report(results: Iterable[OutputConfiguration], report_path: Path) -> Path:
    """将每个输出文件写为 CSV 报告中的一行。"""

    report_path.parent.mkdir(parents=True, exist_ok=True)
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for index, config in enumerate(results):
            categories = ";".join(config.steam_categories)
            for record in config.files:
                writer.writerow(
                    [
                        index,
                        record.final_title,
                        record.fuzzy_title,
                        record.executable_location,
                        record.start_in_directory,
                        record.argument_string,
                        len(record.local_images),
                        len(record.local_icons),
                        categories,
                    ]
                )
    return report_path
