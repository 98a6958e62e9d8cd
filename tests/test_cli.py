"""命令行入口测试。"""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeResponse, FakeSession, json_response, png_bytes
from typer.testing import CliRunner

from cloud_bg_removal.cli import main as cli_main

runner = CliRunner()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_UPLOAD_PRESET",
        "BG_REMOVAL_OUTPUT_DIR",
        "BG_REMOVAL_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BG_REMOVAL_LOG_FILE", str(tmp_path / "debug.log"))


def test_run_without_configuration_exits_with_usage_error(clean_env, make_image) -> None:
    source = make_image("photo.png")

    result = runner.invoke(cli_main.app, ["run", str(source), "--no-finder"])

    assert result.exit_code == 2
    assert "配置错误" in result.output


def test_run_without_selection_exits_with_usage_error(clean_env) -> None:
    result = runner.invoke(
        cli_main.app,
        ["run", "--no-finder", "--cloud-name", "demo", "--upload-preset", "bg_preset"],
    )

    assert result.exit_code == 2
    assert "未选择文件" in result.output


def test_run_uses_finder_selection(clean_env, monkeypatch: pytest.MonkeyPatch, make_image, tmp_path: Path) -> None:
    source = make_image("finder.png")
    session = FakeSession(post=[json_response('{"public_id": "abc"}')], get=[FakeResponse(content=png_bytes())])
    monkeypatch.setattr(cli_main, "get_finder_selection", lambda: source)
    monkeypatch.setattr("cloud_bg_removal.processing.pipeline.requests.Session", lambda: session)

    result = runner.invoke(
        cli_main.app,
        [
            "run",
            "--finder",
            "--no-open",
            "--cloud-name",
            "demo",
            "--upload-preset",
            "bg_preset",
            "--output-dir",
            str(tmp_path / "out"),
        ],
    )

    assert result.exit_code == 0, result.output
    assert (tmp_path / "out" / "finder_no_background.png").exists()


def test_run_reports_pipeline_failure(clean_env, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setenv("CLOUDINARY_UPLOAD_PRESET", "bg_preset")
    missing = tmp_path / "missing.png"

    result = runner.invoke(cli_main.app, ["run", str(missing), "--no-open"])

    assert result.exit_code == 1
    assert "文件不存在" in result.output


def test_config_command_marks_missing_cloud_name(clean_env) -> None:
    result = runner.invoke(cli_main.app, ["config", "--upload-preset", "bg_preset"])

    assert result.exit_code == 2
    assert "Cloud name: ⚠️ 未设置" in result.output
    assert "Upload preset: bg_preset" in result.output


def test_config_command_with_environment(clean_env, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setenv("CLOUDINARY_UPLOAD_PRESET", "bg_preset")

    result = runner.invoke(cli_main.app, ["config"])

    assert result.exit_code == 0
    assert "Cloud name: demo" in result.output
    assert "Downloads" in result.output


def test_run_can_reveal_and_copy_result_path(
    clean_env, monkeypatch: pytest.MonkeyPatch, make_image, tmp_path: Path
) -> None:
    source = make_image("photo.png")
    session = FakeSession(post=[json_response('{"public_id": "abc"}')], get=[FakeResponse(content=png_bytes())])
    revealed: list[Path] = []
    copied: list[str] = []
    monkeypatch.setattr("cloud_bg_removal.processing.pipeline.requests.Session", lambda: session)
    monkeypatch.setattr(cli_main, "reveal_file", revealed.append)
    monkeypatch.setattr(cli_main, "copy_to_clipboard", lambda text: copied.append(text) or False)

    result = runner.invoke(
        cli_main.app,
        [
            "run",
            str(source),
            "--no-finder",
            "--no-open",
            "--reveal",
            "--copy-path",
            "--cloud-name",
            "demo",
            "--upload-preset",
            "bg_preset",
            "--output-dir",
            str(tmp_path / "out"),
        ],
    )

    expected = tmp_path / "out" / "photo_no_background.png"
    assert result.exit_code == 0, result.output
    assert revealed == [expected]
    assert copied == [str(expected)]
    assert "无法访问剪贴板" in result.output
