"""背景移除任务的配置模型。"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

MB = 1024 * 1024

# 免费套餐单文件上限，超过即在本地压缩后再上传。
SOFT_SIZE_LIMIT = 10 * MB
# 服务端绝对上限，超过直接拒绝。
HARD_SIZE_LIMIT = 100 * MB

COMPRESSION_MAX_DIMENSION = 2000

SUPPORTED_EXTENSIONS: Tuple[str, ...] = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tiff")
VALID_MIME_TYPES: Tuple[str, ...] = (
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/tiff",
)

UPLOAD_HOST = "https://api.cloudinary.com"
DELIVERY_HOST = "https://res.cloudinary.com"

DEFAULT_OUTPUT_DIRECTORY = "~/Downloads"
DEFAULT_LOG_FILE = Path.home() / "cloudinary-upload-debug.log"

ENV_CLOUD_NAME = "CLOUDINARY_CLOUD_NAME"
ENV_UPLOAD_PRESET = "CLOUDINARY_UPLOAD_PRESET"
ENV_OUTPUT_DIRECTORY = "BG_REMOVAL_OUTPUT_DIR"
ENV_LOG_FILE = "BG_REMOVAL_LOG_FILE"


@dataclass(slots=True)
class TimeoutConfig:
    """网络请求相关超时（秒）。"""

    connect: float = 30.0
    transfer: float = 120.0
    # 上传整体预算，略大于 transfer，用于区分“整体超时”与“传输超时”。
    upload_overall: float = 150.0
    processing: float = 120.0


@dataclass(slots=True)
class RemovalConfig:
    """单次背景移除任务的配置集合。"""

    cloud_name: str = ""
    upload_preset: str = ""
    output_directory: str = DEFAULT_OUTPUT_DIRECTORY
    log_file: Path = DEFAULT_LOG_FILE
    soft_size_limit: int = SOFT_SIZE_LIMIT
    hard_size_limit: int = HARD_SIZE_LIMIT
    compression_max_dimension: int = COMPRESSION_MAX_DIMENSION
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    upload_host: str = UPLOAD_HOST
    delivery_host: str = DELIVERY_HOST

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "RemovalConfig":
        """从环境变量读取配置，``overrides`` 中非 None 的值优先。"""

        env = os.environ if environ is None else environ
        values = {
            "cloud_name": env.get(ENV_CLOUD_NAME, ""),
            "upload_preset": env.get(ENV_UPLOAD_PRESET, ""),
            "output_directory": env.get(ENV_OUTPUT_DIRECTORY, "") or DEFAULT_OUTPUT_DIRECTORY,
        }
        log_file = env.get(ENV_LOG_FILE)
        if log_file:
            values["log_file"] = Path(log_file).expanduser()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def is_configured(self) -> bool:
        """云端账户名与上传预设均已填写。"""

        return bool(self.cloud_name and self.cloud_name.strip()) and bool(
            self.upload_preset and self.upload_preset.strip()
        )


def resolve_output_directory(directory: str, cwd: Optional[Path] = None) -> Path:
    """解析输出目录：支持 ``~``、相对路径与绝对路径。"""

    value = directory or DEFAULT_OUTPUT_DIRECTORY
    if value.startswith("~"):
        return Path.home() / value[1:].lstrip("/\\")

    path = Path(value)
    if not path.is_absolute():
        return ((cwd or Path.cwd()) / path).resolve()
    return path
