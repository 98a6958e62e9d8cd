"""输出目录与结果写入模块。"""

from __future__ import annotations

import logging
import os
from itertools import count
from pathlib import Path

from cloud_bg_removal.core.config import resolve_output_directory
from cloud_bg_removal.core.exceptions import FilesystemError
from cloud_bg_removal.utils.sanitize import sanitize_filename_stem

LOGGER = logging.getLogger(__name__)

OUTPUT_SUFFIX = "_no_background"
OUTPUT_EXTENSION = ".png"


class OutputManager:
    """负责解析输出目录、生成不冲突的文件名并写入结果。"""

    def __init__(self, output_directory: str) -> None:
        self.output_dir = resolve_output_directory(output_directory)

    def ensure_directory(self) -> Path:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"无法创建输出目录: {self.output_dir}") from exc
        return self.output_dir

    def decide_destination(self, source: Path) -> Path:
        """``photo.jpg`` -> ``photo_no_background.png``，已存在则依次追加 ``_1``、``_2``。"""

        stem = sanitize_filename_stem(source.stem)
        base = f"{stem}{OUTPUT_SUFFIX}"
        destination = self.output_dir / f"{base}{OUTPUT_EXTENSION}"
        if not destination.exists():
            return destination

        for idx in count(1):
            candidate = self.output_dir / f"{base}_{idx}{OUTPUT_EXTENSION}"
            if not candidate.exists():
                LOGGER.info("目标已存在: %s -> 重命名为 %s", destination.name, candidate.name)
                return candidate

        # 理论上不会执行到此处
        return destination

    def save_bytes(self, data: bytes, destination: Path) -> int:
        """写入结果并确认文件非空，返回写入后的字节数。

        先写入同目录下的 ``.partial`` 文件，校验通过后再改名为目标文件，
        失败时不会留下半截或空的结果。
        """

        if not data:
            raise FilesystemError("保存结果失败：文件为空")

        partial = destination.with_name(f".{destination.name}.partial")
        try:
            partial.write_bytes(data)
            written = partial.stat().st_size
            if written == 0:
                raise FilesystemError("保存结果失败：文件为空")
            os.replace(partial, destination)
        except OSError as exc:
            _discard(partial)
            raise FilesystemError(f"写入文件失败: {destination}") from exc
        except FilesystemError:
            _discard(partial)
            raise

        LOGGER.info("结果已写入 %s (%d 字节)", destination, written)
        return written


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.debug("清理未完成的结果失败 %s: %s", path, exc)
