"""桌面环境协作者：Finder 选区读取与结果预览。"""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional, Sequence

from cloud_bg_removal.utils.sanitize import shell_join

LOGGER = logging.getLogger(__name__)

FINDER_SELECTION_SCRIPT = 'tell application "Finder" to get POSIX path of (selection as alias)'


def run_command(argv: Sequence[str], timeout: float = 30.0, input_text: Optional[str] = None) -> str:
    """执行外部命令并返回标准输出，失败时抛出 ``subprocess`` 的异常。"""

    LOGGER.debug("执行命令: %s", shell_join(argv))
    completed = subprocess.run(
        list(argv),
        check=True,
        capture_output=True,
        text=True,
        timeout=timeout,
        input=input_text,
    )
    return completed.stdout


def get_finder_selection() -> Optional[Path]:
    """读取 Finder 当前选中的文件，无选区或出错时返回 None。"""

    try:
        stdout = run_command(["osascript", "-e", FINDER_SELECTION_SCRIPT])
    except (OSError, subprocess.SubprocessError) as exc:
        LOGGER.debug("读取 Finder 选区失败：%s", exc)
        return None

    value = stdout.strip()
    if not value:
        return None
    path = Path(value)
    return path if path.exists() else None


def open_file(path: Path) -> bool:
    """用系统默认预览程序打开文件。文件已保存，打开失败只记录日志。"""

    if sys.platform == "darwin":
        argv = ["open", "-a", "Preview", str(path)]
    else:
        argv = ["xdg-open", str(path)]

    try:
        run_command(argv)
    except (OSError, subprocess.SubprocessError) as exc:
        LOGGER.info("无法打开预览：%s", exc)
        return False
    return True


def reveal_file(path: Path) -> bool:
    """在 Finder 中显示文件（其他平台打开所在目录）。"""

    if sys.platform == "darwin":
        argv = ["open", "-R", str(path)]
    else:
        argv = ["xdg-open", str(path.parent)]

    try:
        run_command(argv)
    except (OSError, subprocess.SubprocessError) as exc:
        LOGGER.info("无法显示文件：%s", exc)
        return False
    return True


def copy_to_clipboard(text: str) -> bool:
    """复制文本到系统剪贴板，失败返回 False。"""

    if sys.platform == "darwin":
        argv = ["pbcopy"]
    else:
        argv = ["xclip", "-selection", "clipboard"]

    try:
        run_command(argv, input_text=text)
    except (OSError, subprocess.SubprocessError) as exc:
        LOGGER.info("复制到剪贴板失败：%s", exc)
        return False
    return True
