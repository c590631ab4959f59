"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from shortcut_discovery.core.config import RunSettings, load_configurations, load_known_titles
from shortcut_discovery.core.exceptions import ShortcutDiscoveryError
from shortcut_discovery.core.progress import ProgressUpdate
from shortcut_discovery.core.report import write_csv_report
from shortcut_discovery.parsers.registry import default_registry, describe_parsers
from shortcut_discovery.processing.pipeline import process_configurations
from shortcut_discovery.utils.logging import setup_logging

app = typer.Typer(help="按配置扫描游戏文件并生成快捷方式数据。")


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if task_id is None:
            task_id = progress.add_task("扫描配置", total=update.total)
        progress.update(task_id, completed=update.completed)
        if update.message:
            progress.log(update.message)

    return callback


@app.command("run")
def run_cli(
    config_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="配置文件 (JSON)"),
    report: Optional[Path] = typer.Option(None, "--report", "-r", help="CSV 报告输出路径"),
    parser_timeout: Optional[float] = typer.Option(None, "--parser-timeout", help="单个解析器超时（秒）"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="同时写入的日志文件"),
    known_titles: Optional[Path] = typer.Option(
        None, "--known-titles", exists=True, dir_okay=False, help="模糊匹配使用的已知标题列表（每行一个）"
    ),
    fuzzy_cutoff: int = typer.Option(90, "--fuzzy-cutoff", min=0, max=100, help="对齐已知标题的最低相似度"),
) -> None:
    """执行一次扫描。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
    )

    try:
        configurations = load_configurations(config_file.expanduser().resolve())
        settings = RunSettings(
            parser_timeout=parser_timeout,
            known_titles=load_known_titles(known_titles) if known_titles is not None else [],
            fuzzy_score_cutoff=fuzzy_cutoff,
        )
        with progress:
            result = process_configurations(
                configurations,
                settings=settings,
                progress_callback=_build_progress_callback(progress),
            )
    except ShortcutDiscoveryError as exc:
        typer.echo(f"扫描失败：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    for index, output in enumerate(result.results):
        typer.echo(f"配置 {index}：发现 {len(output.files)} 个文件，失败 {len(output.failed)} 个。")
        if output.missing_user_accounts:
            typer.echo(f"  未找到账户：{', '.join(output.missing_user_accounts)}")

    if result.no_accounts_found:
        typer.echo("警告：所有配置均未找到任何 Steam 账户。", err=True)

    if report is not None:
        report_path = write_csv_report(result.results, report.expanduser().resolve())
        typer.echo(f"报告文件：{report_path}")


@app.command("parsers")
def parsers_cli() -> None:
    """列出可用的解析器。"""

    for key, info in describe_parsers(default_registry()).items():
        inputs = ", ".join(info.inputs) or "-"
        typer.echo(f"{key}\t输入: {inputs}")


if __name__ == "__main__":
    app()
