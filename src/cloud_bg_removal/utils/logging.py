"""日志配置与上传诊断日志。"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """初始化项目日志配置。"""

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class _SilentFileHandler(logging.FileHandler):
    """写入失败时静默丢弃的 FileHandler。"""

    def emit(self, record: logging.LogRecord) -> None:
        # delay=True 时首次 emit 才打开文件，打开失败不会经过 handleError。
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802 - logging API
        pass


class DiagnosticLog:
    """追加写入的诊断日志，每行形如 ``[时间戳] [阶段] 内容``。

    日志文件只写不读，写入失败不会影响流水线。使用完毕后调用
    :meth:`close`，也可以作为上下文管理器使用。
    """

    def __init__(self, path: Path, *, name: str = "cloud_bg_removal.diagnostics") -> None:
        self.path = path
        # 不经 getLogger 注册，实例释放后 logger 随之回收。
        self._logger = logging.Logger(name, logging.DEBUG)
        self._logger.propagate = False
        self._handler: Optional[logging.Handler] = _SilentFileHandler(
            str(path), mode="a", encoding="utf-8", delay=True
        )
        self._handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(self._handler)

    def write(self, stage: str, message: str) -> None:
        """记录一行诊断信息，同时输出到模块日志。"""

        LOGGER.debug("[%s] %s", stage, message)
        if self._handler is None:
            return
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        self._logger.info("[%s] [%s] %s", timestamp, stage, message)

    def close(self) -> None:
        if self._handler is None:
            return
        self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def __enter__(self) -> "DiagnosticLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class NullDiagnosticLog(DiagnosticLog):
    """不落盘的诊断日志，供测试或未配置日志文件时使用。"""

    def __init__(self) -> None:
        self.path = None
        self._handler = None
        self._logger = logging.Logger("cloud_bg_removal.diagnostics.null")
