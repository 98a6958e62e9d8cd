"""输入图片校验。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from PIL import Image

from cloud_bg_removal.core.config import HARD_SIZE_LIMIT, MB, SUPPORTED_EXTENSIONS, VALID_MIME_TYPES

LOGGER = logging.getLogger(__name__)

MimeProber = Callable[[Path], str]

# Pillow 的格式名与 `file --mime-type` 的结果不完全一致。
FORMAT_MIME_OVERRIDES = {
    "MPO": "image/jpeg",
}

PROBE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


@dataclass(slots=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None


def probe_mime_type(path: Path) -> str:
    """通过 Pillow 识别文件的真实格式并返回 MIME 类型。

    无法识别时抛出 ``OSError``（``UnidentifiedImageError`` 是其子类）；
    像素数超过 Pillow 上限时抛出 ``DecompressionBombError``。多帧 JPEG (MPO)
    按 ``image/jpeg`` 报告。
    """

    with Image.open(path) as img:
        image_format = img.format or ""
    mime = FORMAT_MIME_OVERRIDES.get(image_format) or Image.MIME.get(image_format)
    if not mime:
        raise OSError(f"未知的图像格式: {image_format}")
    return mime


def validate_image(
    path: Path,
    *,
    max_size: int = HARD_SIZE_LIMIT,
    mime_prober: Optional[MimeProber] = probe_mime_type,
    extensions: Sequence[str] = SUPPORTED_EXTENSIONS,
    mime_types: Sequence[str] = VALID_MIME_TYPES,
) -> ValidationResult:
    """依次检查存在性、扩展名、MIME 类型与文件大小。

    先做廉价的存在性与扩展名检查，再调用外部探测，最后读取文件大小。
    MIME 探测本身失败（工具不可用、无法识别）时仅记录日志，按扩展名放行。
    """

    if not path.is_file():
        return ValidationResult(False, "文件不存在")

    ext = path.suffix.lower()
    if ext not in extensions:
        return ValidationResult(False, f"不支持的文件格式，支持: {', '.join(extensions)}")

    if mime_prober is not None:
        try:
            mime = mime_prober(path).strip().lower()
        except PROBE_ERRORS as exc:
            LOGGER.debug("MIME 探测失败，按扩展名放行 %s: %s", path, exc)
        else:
            if mime not in mime_types:
                return ValidationResult(False, f"不支持的图像格式: {mime}")

    try:
        size = path.stat().st_size
    except OSError as exc:
        return ValidationResult(False, str(exc))

    if size == 0:
        return ValidationResult(False, "文件为空")
    if size > max_size:
        return ValidationResult(
            False,
            f"文件过大: {size / MB:.2f}MB（压缩前上限 {max_size / MB:.0f}MB）",
        )
    return ValidationResult(True)
