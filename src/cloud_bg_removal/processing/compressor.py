"""超过上传软上限时的本地压缩。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from PIL import Image, ImageOps, UnidentifiedImageError

from cloud_bg_removal.core.config import COMPRESSION_MAX_DIMENSION
from cloud_bg_removal.core.exceptions import CompressionError
from cloud_bg_removal.core.models import ImageFile
from cloud_bg_removal.core.temp_files import TempFileRegistry

LOGGER = logging.getLogger(__name__)

Resizer = Callable[[Path, int, Path], None]


def pillow_resize(source: Path, max_dimension: int, destination: Path) -> None:
    """将最长边限制在 ``max_dimension`` 像素内，按原格式写出。"""

    with Image.open(source) as img:
        image_format = img.format
        img = ImageOps.exif_transpose(img)
        img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
        if image_format == "JPEG" and img.mode not in {"RGB", "L"}:
            img = img.convert("RGB")
        img.save(destination, format=image_format)


def compress_image(
    image: ImageFile,
    registry: TempFileRegistry,
    *,
    max_dimension: int = COMPRESSION_MAX_DIMENSION,
    resizer: Resizer = pillow_resize,
) -> ImageFile:
    """生成压缩后的临时副本并返回新的 :class:`ImageFile`。

    临时路径在调用缩放工具之前登记，中途崩溃也能被调用方清理。
    """

    ext = image.extension or ".jpg"
    destination = registry.new_path(ext)
    LOGGER.info("压缩 %s -> %s (最长边 %dpx)", image.name, destination.name, max_dimension)

    try:
        resizer(image.path, max_dimension, destination)
        if not destination.exists() or destination.stat().st_size == 0:
            raise CompressionError("输出文件无效")
    except (
        OSError,
        ValueError,
        UnidentifiedImageError,
        Image.DecompressionBombError,
        CompressionError,
    ) as exc:
        _remove_partial(destination)
        raise CompressionError(f"压缩失败: {exc}") from exc

    return ImageFile(destination)


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.debug("清理压缩残留失败 %s: %s", path, exc)
