"""桌面协作者测试。"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from cloud_bg_removal.utils import desktop


@pytest.fixture
def recorded(monkeypatch: pytest.MonkeyPatch) -> list[tuple[list[str], object]]:
    calls: list[tuple[list[str], object]] = []

    def fake_run_command(argv, timeout=30.0, input_text=None):
        calls.append((list(argv), input_text))
        return ""

    monkeypatch.setattr(desktop, "run_command", fake_run_command)
    monkeypatch.setattr(desktop.sys, "platform", "darwin")
    return calls


def test_reveal_file_uses_finder(recorded) -> None:
    assert desktop.reveal_file(Path("/tmp/photo_no_background.png"))

    assert recorded == [(["open", "-R", "/tmp/photo_no_background.png"], None)]


def test_copy_to_clipboard_pipes_text(recorded) -> None:
    assert desktop.copy_to_clipboard("/tmp/it's here.png")

    assert recorded == [(["pbcopy"], "/tmp/it's here.png")]


def test_open_file_uses_preview(recorded) -> None:
    assert desktop.open_file(Path("/tmp/out.png"))

    assert recorded == [(["open", "-a", "Preview", "/tmp/out.png"], None)]


def test_desktop_failures_are_reported_as_false(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing(argv, timeout=30.0, input_text=None):
        raise subprocess.CalledProcessError(1, argv)

    monkeypatch.setattr(desktop, "run_command", failing)

    assert not desktop.reveal_file(Path("/tmp/out.png"))
    assert not desktop.copy_to_clipboard("/tmp/out.png")
    assert desktop.get_finder_selection() is None
