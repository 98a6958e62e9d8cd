"""输出目录解析与文件命名测试。"""

from __future__ import annotations

from pathlib import Path

import pytest

from cloud_bg_removal.core.config import RemovalConfig, resolve_output_directory
from cloud_bg_removal.core.exceptions import FilesystemError
from cloud_bg_removal.core.output_manager import OutputManager


def test_collision_appends_numeric_suffix(tmp_path: Path) -> None:
    manager = OutputManager(str(tmp_path))
    source = Path("/somewhere/photo.jpg")

    first = manager.decide_destination(source)
    assert first.name == "photo_no_background.png"
    manager.save_bytes(b"one", first)

    second = manager.decide_destination(source)
    assert second.name == "photo_no_background_1.png"
    manager.save_bytes(b"two", second)

    third = manager.decide_destination(source)
    assert third.name == "photo_no_background_2.png"


def test_unsafe_stem_characters_are_replaced(tmp_path: Path) -> None:
    manager = OutputManager(str(tmp_path))

    destination = manager.decide_destination(Path("/x/we?ird:name.png"))

    assert destination.name == "we_ird_name_no_background.png"


def test_ensure_directory_creates_nested_path(tmp_path: Path) -> None:
    manager = OutputManager(str(tmp_path / "a" / "b"))

    assert manager.ensure_directory().is_dir()


def test_ensure_directory_fails_when_path_is_a_file(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    manager = OutputManager(str(blocker / "out"))

    with pytest.raises(FilesystemError, match="无法创建输出目录"):
        manager.ensure_directory()


def test_save_rejects_empty_result(tmp_path: Path) -> None:
    manager = OutputManager(str(tmp_path))

    with pytest.raises(FilesystemError, match="文件为空"):
        manager.save_bytes(b"", tmp_path / "empty.png")

    assert list(tmp_path.iterdir()) == []


def test_failed_write_leaves_no_partial_result(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    out = tmp_path / "out"
    out.mkdir()
    manager = OutputManager(str(out))
    destination = manager.decide_destination(Path("/x/photo.jpg"))

    def disk_full(self: Path, data: bytes) -> int:
        with open(self, "wb") as handle:
            handle.write(data[:10])
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(Path, "write_bytes", disk_full)

    with pytest.raises(FilesystemError, match="写入文件失败"):
        manager.save_bytes(b"\x89PNG" + b"\x00" * 4000, destination)

    monkeypatch.undo()
    assert list(out.iterdir()) == []
    assert manager.decide_destination(Path("/x/photo.jpg")).name == "photo_no_background.png"


def test_resolve_output_directory_variants(tmp_path: Path) -> None:
    assert resolve_output_directory("~/Downloads") == Path.home() / "Downloads"
    assert resolve_output_directory("~") == Path.home()
    assert resolve_output_directory("out", cwd=tmp_path) == (tmp_path / "out").resolve()
    assert resolve_output_directory(str(tmp_path)) == tmp_path
    assert resolve_output_directory("") == Path.home() / "Downloads"


def test_config_from_env_with_overrides(tmp_path: Path) -> None:
    env = {
        "CLOUDINARY_CLOUD_NAME": "demo",
        "CLOUDINARY_UPLOAD_PRESET": "bg_preset",
        "BG_REMOVAL_LOG_FILE": str(tmp_path / "debug.log"),
    }

    config = RemovalConfig.from_env(env, output_directory="out", upload_preset=None)

    assert config.cloud_name == "demo"
    assert config.upload_preset == "bg_preset"
    assert config.output_directory == "out"
    assert config.log_file == tmp_path / "debug.log"
    assert config.is_configured()
    assert not RemovalConfig.from_env({}).is_configured()
    assert not RemovalConfig(cloud_name="demo", upload_preset="   ").is_configured()
