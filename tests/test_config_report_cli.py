"""配置加载、CSV 报告与命令行测试。"""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from shortcut_discovery.cli.main import app
from shortcut_discovery.core.config import Configuration, load_configurations, load_known_titles
from shortcut_discovery.core.exceptions import InvalidConfigurationError
from shortcut_discovery.core.models import OutputConfiguration, OutputFile
from shortcut_discovery.core.report import HEADER, write_csv_report


def write_json(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_configurations_accepts_list_and_wrapper(tmp_path: Path) -> None:
    entry = {
        "parser_type": "Glob",
        "rom_directory": "/roms",
        "parser_inputs": {"glob": "${title}.bin"},
        "fuzzy_match": {"use": False},
        "image_providers": ["steamgriddb"],
    }
    as_list = load_configurations(write_json(tmp_path / "list.json", [entry]))
    wrapped = load_configurations(write_json(tmp_path / "wrapped.json", {"configurations": [entry]}))

    assert as_list == wrapped
    config = as_list[0]
    assert isinstance(config, Configuration)
    assert config.parser_inputs == {"glob": "${title}.bin"}
    assert config.fuzzy_match.use is False
    assert config.fuzzy_match.remove_brackets is True
    assert config.image_providers == ["steamgriddb"]
    assert config.online_image_queries == "${${fuzzyTitle}}"


def test_load_configurations_expands_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    path = write_json(tmp_path / "config.json", [{"parser_type": "Glob", "rom_directory": "~/roms"}])

    config = load_configurations(path)[0]

    assert config.rom_directory == str(tmp_path / "roms")


@pytest.mark.parametrize(
    "entry",
    [
        {"parser_type": "Glob", "rom_directory": "/roms", "unknown": 1},
        {"rom_directory": "/roms"},
        {"parser_type": "Glob", "rom_directory": ""},
        {"parser_type": "Glob", "rom_directory": "/roms", "fuzzy_match": {"use": "yes"}},
        {"parser_type": "Glob", "rom_directory": "/roms", "user_accounts": {"extra": True}},
        {"parser_type": "Glob", "rom_directory": "/roms", "parser_inputs": {"glob": 1}},
        {"parser_type": "Glob", "rom_directory": "/roms", "append_args_to_executable": "no"},
        {"parser_type": "Glob", "rom_directory": "/roms", "steam_category": ["a"]},
    ],
)
def test_load_configurations_rejects_invalid_entries(tmp_path: Path, entry: dict) -> None:
    path = write_json(tmp_path / "config.json", [entry])

    with pytest.raises(InvalidConfigurationError):
        load_configurations(path)


def test_load_configurations_rejects_bad_files(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidConfigurationError):
        load_configurations(broken)
    with pytest.raises(InvalidConfigurationError):
        load_configurations(tmp_path / "missing.json")
    with pytest.raises(InvalidConfigurationError):
        load_configurations(write_json(tmp_path / "object.json", {"parser_type": "Glob"}))


def test_load_known_titles(tmp_path: Path) -> None:
    path = tmp_path / "titles.txt"
    path.write_text("# 标题列表\nMetroid Fusion\n\n  Castlevania  \nMetroid Fusion\n", encoding="utf-8")

    assert load_known_titles(path) == ["Metroid Fusion", "Castlevania"]
    with pytest.raises(InvalidConfigurationError):
        load_known_titles(tmp_path / "missing.txt")


def test_write_csv_report(tmp_path: Path) -> None:
    record = OutputFile(
        executable_location="/roms/Foo.bin",
        start_in_directory="/roms",
        extracted_title="Foo",
        fuzzy_title="Foo",
        final_title="Foo",
        fuzzy_final_title="Foo",
        file_path="/roms/Foo.bin",
        argument_string="-f",
        local_images=["file:///roms/Foo.png"],
    )
    output = OutputConfiguration(
        steam_categories=["Arcade", "Retro"],
        steam_directory="",
        append_args_to_executable=True,
        image_providers=[],
        files=[record],
    )

    report_path = write_csv_report([output], tmp_path / "reports" / "report.csv")

    with report_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == HEADER
    assert rows[1] == ["0", "Foo", "Foo", "/roms/Foo.bin", "/roms", "-f", "1", "0", "Arcade;Retro"]


def test_cli_lists_parsers() -> None:
    result = CliRunner().invoke(app, ["parsers"])

    assert result.exit_code == 0
    assert "Glob\t" in result.stdout
    assert "Glob-regex\t" in result.stdout


def test_cli_run_writes_report(tmp_path: Path) -> None:
    rom_dir = tmp_path / "roms"
    rom_dir.mkdir()
    (rom_dir / "Foo.bin").write_text("x")
    (rom_dir / "Bar.bin").write_text("x")
    config_path = write_json(
        tmp_path / "config.json",
        [
            {
                "parser_type": "Glob",
                "rom_directory": str(rom_dir),
                "parser_inputs": {"glob": "${title}.bin"},
                "fuzzy_match": {"use": False},
            }
        ],
    )
    report_path = tmp_path / "out" / "report.csv"
    log_path = tmp_path / "logs" / "run.log"

    result = CliRunner().invoke(
        app, ["run", str(config_path), "--report", str(report_path), "--log-file", str(log_path)]
    )

    assert result.exit_code == 0
    assert "发现 2 个文件" in result.stdout
    assert report_path.exists()
    assert log_path.exists()
    with report_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    assert [row[1] for row in rows[1:]] == ["Bar", "Foo"]


def test_cli_run_uses_known_titles(tmp_path: Path) -> None:
    rom_dir = tmp_path / "roms"
    rom_dir.mkdir()
    (rom_dir / "Metroid - Fusion (USA).gba").write_text("x")
    titles_path = tmp_path / "titles.txt"
    titles_path.write_text("Metroid Fusion\n", encoding="utf-8")
    config_path = write_json(
        tmp_path / "config.json",
        [{"parser_type": "Glob", "rom_directory": str(rom_dir), "parser_inputs": {"glob": "${title}.gba"}}],
    )
    report_path = tmp_path / "report.csv"

    result = CliRunner().invoke(
        app, ["run", str(config_path), "--known-titles", str(titles_path), "--report", str(report_path)]
    )

    assert result.exit_code == 0
    with report_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    assert rows[1][1] == "Metroid - Fusion (USA)"
    assert rows[1][2] == "Metroid Fusion"


def test_cli_run_reports_unknown_parser(tmp_path: Path) -> None:
    config_path = write_json(tmp_path / "config.json", [{"parser_type": "Nope", "rom_directory": str(tmp_path)}])

    result = CliRunner().invoke(app, ["run", str(config_path)])

    assert result.exit_code == 1
