"""处理流水线：校验配置、并发执行解析器与账户发现、构造输出记录、并发解析本地资源。"""

from __future__ import annotations

import asyncio
import copy
import logging
import os
from typing import Callable, List, Optional, Sequence

from shortcut_discovery.core.accounts import AccountProvider, SteamAccountProvider, filter_user_accounts
from shortcut_discovery.core.config import Configuration, RunSettings
from shortcut_discovery.core.exceptions import ParserExecutionError
from shortcut_discovery.core.models import (
    DiscoveryResult,
    OutputConfiguration,
    OutputFile,
    RunResult,
    UserAccount,
)
from shortcut_discovery.core.progress import ProgressUpdate
from shortcut_discovery.core.scanner import DiscoveryCache
from shortcut_discovery.parsers.base import DiscoveryParser
from shortcut_discovery.parsers.registry import ParserRegistry, default_registry
from shortcut_discovery.processing.assets import filter_local_images, resolve_field_globs
from shortcut_discovery.processing.fuzzy import FuzzyMatcher, TitleFuzzyMatcher
from shortcut_discovery.templating.variables import (
    apply_title_modifier,
    make_variable_context,
    replace_variables,
    variable_string_to_list,
)

LOGGER = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[ProgressUpdate], None]]

# 各字段的变量展开深度。
ARGUMENTS_DEPTH = 0
ONLINE_QUERY_DEPTH = 1

_STAGES = 4


class DiscoveryPipeline:
    """按配置顺序产出结果的发现流水线。

    每次 ``run`` 都使用新的 ``DiscoveryCache``，同一次运行内所有扫描共享该缓存。
    """

    def __init__(
        self,
        registry: Optional[ParserRegistry] = None,
        fuzzy_matcher: Optional[FuzzyMatcher] = None,
        account_provider: Optional[AccountProvider] = None,
        settings: Optional[RunSettings] = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.registry = registry or default_registry()
        self.account_provider = account_provider or SteamAccountProvider()
        self.settings = settings or RunSettings()
        self.fuzzy_matcher = fuzzy_matcher or TitleFuzzyMatcher(
            self.settings.known_titles, score_cutoff=self.settings.fuzzy_score_cutoff
        )
        self.progress_callback = progress_callback
        self.cache = DiscoveryCache()

    async def run(self, configurations: Sequence[Configuration]) -> RunResult:
        """执行流水线，返回与输入顺序对齐的结果。"""

        self.cache = DiscoveryCache()
        total = len(configurations)

        # 任何解析器不存在都在开始 I/O 之前终止整个批次。
        parsers = [self.registry.get(config.parser_type) for config in configurations]
        for config in configurations:
            self.registry.normalize_inputs(config.parser_type, config.parser_inputs)
        self._emit(0, "validate", "配置校验完成")

        LOGGER.info("开始执行 %d 个解析任务", total)
        parser_tasks = [
            self._execute_parser(parser, config) for parser, config in zip(parsers, configurations)
        ]
        login_tasks = [self._discover_accounts(config) for config in configurations]
        discovered, logins = await asyncio.gather(
            asyncio.gather(*parser_tasks),
            asyncio.gather(*login_tasks),
        )
        self._emit(1, "discover", "文件与账户发现完成")

        results: List[OutputConfiguration] = []
        total_accounts = 0
        for index, config in enumerate(configurations):
            output = self._build_output(config, discovered[index], logins[index])
            total_accounts += len(output.found_user_accounts)
            results.append(output)
            LOGGER.info(
                "配置 %d (%s)：%d 个文件，%d 个失败",
                index,
                config.parser_type,
                len(output.files),
                len(output.failed),
            )
        self._emit(2, "build", "输出记录构造完成")

        await asyncio.gather(*(self._resolve_assets(config, output) for config, output in zip(configurations, results)))
        self._emit(3, "assets", "本地资源解析完成")

        LOGGER.debug("扫描缓存：%d 次扫描，%d 次命中", self.cache.scans, self.cache.hits)
        self._emit(_STAGES, "done", "处理完成", status="done")
        return RunResult(results=results, no_accounts_found=total_accounts == 0)

    async def _execute_parser(self, parser: DiscoveryParser, config: Configuration) -> DiscoveryResult:
        coroutine = parser.execute(config.rom_directory, config.parser_inputs, self.cache)
        timeout = self.settings.parser_timeout
        if timeout is None:
            return await coroutine
        try:
            return await asyncio.wait_for(coroutine, timeout)
        except asyncio.TimeoutError as exc:
            raise ParserExecutionError(f"解析器执行超时 ({timeout}s): {config.parser_type}") from exc

    async def _discover_accounts(self, config: Configuration) -> List[UserAccount]:
        if not config.steam_directory:
            return []
        return await self.account_provider.get_available_logins(
            config.steam_directory, config.user_accounts.use_credentials
        )

    def _build_output(
        self,
        config: Configuration,
        data: DiscoveryResult,
        accounts: List[UserAccount],
    ) -> OutputConfiguration:
        fuzzy = config.fuzzy_match
        if fuzzy.use:
            self.fuzzy_matcher.fuzzy_match_parsed_data(data, fuzzy.remove_characters, fuzzy.remove_brackets)

        filtered = filter_user_accounts(
            accounts,
            variable_string_to_list(config.user_accounts.specified_accounts),
            config.steam_directory,
            config.user_accounts.skip_with_missing_data_dir,
        )

        output = OutputConfiguration(
            steam_categories=variable_string_to_list(config.steam_category, unique_only=True),
            steam_directory=config.steam_directory,
            append_args_to_executable=config.append_args_to_executable,
            image_providers=list(config.image_providers),
            found_user_accounts=filtered.found,
            missing_user_accounts=filtered.missing,
        )

        for item in data.success:
            output.files.append(self._build_file(config, item.file_path, item.extracted_title, item.fuzzy_title))

        output.failed = copy.deepcopy(data.failed)
        return output

    def _build_file(
        self,
        config: Configuration,
        file_path: str,
        extracted_title: str,
        fuzzy_title: Optional[str],
    ) -> OutputFile:
        fuzzy_title = fuzzy_title or extracted_title
        executable = config.executable_location or file_path

        output_file = OutputFile(
            executable_location=executable,
            start_in_directory=config.start_in_directory or os.path.dirname(executable),
            extracted_title=extracted_title,
            fuzzy_title=fuzzy_title,
            final_title=apply_title_modifier(config.title_modifier, extracted_title),
            fuzzy_final_title=apply_title_modifier(config.title_modifier, fuzzy_title),
            file_path=file_path,
        )

        context = make_variable_context(config, output_file)
        output_file.argument_string = replace_variables(config.executable_args, context, ARGUMENTS_DEPTH)
        queries = [
            replace_variables(query, context, ONLINE_QUERY_DEPTH)
            for query in variable_string_to_list(config.online_image_queries)
        ]
        output_file.online_image_queries = list(dict.fromkeys(query for query in queries if query))
        return output_file

    async def _resolve_assets(self, config: Configuration, output: OutputConfiguration) -> None:
        images, icons = await asyncio.gather(
            resolve_field_globs(config.local_images, config, output.files, self.registry, self.fuzzy_matcher, self.cache),
            resolve_field_globs(config.local_icons, config, output.files, self.registry, self.fuzzy_matcher, self.cache),
        )
        for index, output_file in enumerate(output.files):
            output_file.resolved_local_images = images.resolved_globs[index]
            output_file.local_images = filter_local_images(images.resolved_files[index])
            output_file.resolved_local_icons = icons.resolved_globs[index]
            output_file.local_icons = icons.resolved_files[index]

    def _emit(self, completed: int, stage: str, message: str, status: str = "running") -> None:
        if not self.progress_callback:
            return
        self.progress_callback(
            ProgressUpdate(total=_STAGES, completed=completed, stage=stage, message=message, status=status)
        )


def process_configurations(
    configurations: Sequence[Configuration],
    *,
    registry: Optional[ParserRegistry] = None,
    fuzzy_matcher: Optional[FuzzyMatcher] = None,
    account_provider: Optional[AccountProvider] = None,
    settings: Optional[RunSettings] = None,
    progress_callback: ProgressCallback = None,
) -> RunResult:
    """同步入口：在新的事件循环中执行一次流水线。"""

    pipeline = DiscoveryPipeline(
        registry=registry,
        fuzzy_matcher=fuzzy_matcher,
        account_provider=account_provider,
        settings=settings,
        progress_callback=progress_callback,
    )
    return asyncio.run(pipeline.run(configurations))
