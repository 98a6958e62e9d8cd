"""单次运行内的临时文件登记与清理。"""

from __future__ import annotations

import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Iterator, Optional

LOGGER = logging.getLogger(__name__)


class TempFileRegistry:
    """登记本次运行创建的临时文件，退出时保证删除。

    用作上下文管理器：无论正常结束还是抛出异常，``__exit__`` 都会
    逐个删除已登记的文件。只删除仍存在且位于临时目录下的文件。
    """

    def __init__(self, temp_dir: Optional[Path] = None, prefix: str = "cloudinary_compressed") -> None:
        self.temp_dir = Path(temp_dir or tempfile.gettempdir())
        self.prefix = prefix
        self._paths: list[Path] = []

    def new_path(self, suffix: str) -> Path:
        """生成唯一的临时文件路径并立即登记。"""

        suffix = suffix if suffix.startswith(".") else f".{suffix}"
        name = f"{self.prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}{suffix}"
        path = self.temp_dir / name
        self.register(path)
        return path

    def register(self, path: Path) -> None:
        self._paths.append(path)

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def cleanup(self) -> None:
        """尽力删除所有登记的文件，单个失败不影响其余文件。"""

        root = os.path.realpath(self.temp_dir)
        for path in self._paths:
            if not path.exists():
                continue
            if not os.path.realpath(path).startswith(root + os.sep):
                LOGGER.warning("跳过临时目录之外的文件：%s", path)
                continue
            try:
                path.unlink()
                LOGGER.debug("已删除临时文件：%s", path)
            except OSError as exc:
                LOGGER.warning("删除临时文件失败 %s: %s", path, exc)
        self._paths.clear()

    def __enter__(self) -> "TempFileRegistry":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()
