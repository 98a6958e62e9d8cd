"""调用远端变换移除背景，三种方法依次回退。"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import requests

from cloud_bg_removal.core.config import DELIVERY_HOST, TimeoutConfig
from cloud_bg_removal.core.exceptions import (
    AggregateTransformError,
    ConfigurationError,
    TransformError,
    TransformTimeoutError,
)
from cloud_bg_removal.core.models import TRANSFORM_METHODS, TransformMethod
from cloud_bg_removal.utils.sanitize import (
    ASSET_ID_CHARS,
    CLOUD_NAME_CHARS,
    METHOD_CODE_CHARS,
    is_safe_asset_id,
    sanitize_identifier,
)

LOGGER = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
MIN_RESULT_SIZE = 1000
HTML_MARKERS = ("<html", "error", "not found")
PREVIEW_LENGTH = 200

MethodCallback = Optional[Callable[[TransformMethod], None]]


def transform_url(cloud_name: str, method_code: str, asset_id: str, host: str = DELIVERY_HOST) -> str:
    """构造变换地址，三段输入分别按各自的字符集清洗。"""

    cloud = sanitize_identifier(cloud_name, CLOUD_NAME_CHARS)
    if not cloud:
        raise ConfigurationError("云端账户名无效：只包含非法字符")
    code = sanitize_identifier(method_code, METHOD_CODE_CHARS)
    clean_id = sanitize_identifier(asset_id, ASSET_ID_CHARS)
    if not is_safe_asset_id(clean_id):
        raise TransformError(f"资源 ID 格式不合法: {asset_id!r}")
    return f"{host}/{cloud}/image/upload/{code}/f_png/{clean_id}.png"


def check_image_payload(data: bytes) -> bytes:
    """确认响应内容大致是一张图片，而不是伪装成 200 的错误页。"""

    if not data:
        raise TransformError("Cloudinary 返回空响应")

    is_png = data[: len(PNG_SIGNATURE)] == PNG_SIGNATURE

    head = data[:100].decode("utf-8", errors="ignore").lower()
    if any(marker in head for marker in HTML_MARKERS):
        raise TransformError("收到的是错误页面而不是图片")

    if not is_png and len(data) < MIN_RESULT_SIZE:
        preview = data.decode("utf-8", errors="replace")[:PREVIEW_LENGTH]
        raise TransformError(f"无效的响应内容: {preview}")
    return data


def remove_background(
    asset_id: str,
    method: TransformMethod,
    cloud_name: str,
    *,
    session: Optional[requests.Session] = None,
    timeouts: Optional[TimeoutConfig] = None,
    host: str = DELIVERY_HOST,
) -> bytes:
    """用单个变换方法请求去背景结果，返回原始字节。"""

    session = session or requests.Session()
    timeouts = timeouts or TimeoutConfig()
    url = transform_url(cloud_name, method.code, asset_id, host)
    LOGGER.debug("请求 %s: %s", method.label, url)

    try:
        response = session.get(url, timeout=(timeouts.connect, timeouts.processing))
        if not response.ok:
            if response.status_code == 423:
                raise TransformError("背景移除仍在处理中，请稍后再试")
            content_type = response.headers.get("content-type", "")
            if "text/html" in content_type:
                raise TransformError(f'背景移除方法 "{method.label}" 不可用或执行失败')
            raise TransformError(f"背景移除失败 ({response.status_code}): {response.reason}")
        data = response.content
    except requests.Timeout as exc:
        raise TransformTimeoutError("背景移除超时：处理时间过长") from exc
    except requests.RequestException as exc:
        raise TransformError(f"背景移除请求失败: {exc}") from exc

    return check_image_payload(data)


def try_background_removal(
    asset_id: str,
    cloud_name: str,
    *,
    methods: Sequence[TransformMethod] = TRANSFORM_METHODS,
    session: Optional[requests.Session] = None,
    timeouts: Optional[TimeoutConfig] = None,
    host: str = DELIVERY_HOST,
    on_attempt: MethodCallback = None,
) -> bytes:
    """按固定优先级依次尝试各方法，首个合格结果立即返回。

    全部失败时抛出 :class:`AggregateTransformError`，按尝试顺序列出每个方法的失败原因。
    """

    session = session or requests.Session()
    failures: list[tuple[str, str]] = []

    for method in methods:
        if on_attempt:
            on_attempt(method)
        try:
            result = remove_background(
                asset_id, method, cloud_name, session=session, timeouts=timeouts, host=host
            )
        except TransformError as exc:
            LOGGER.info("%s 失败：%s", method.label, exc)
            failures.append((method.label, str(exc)))
            continue

        if len(result) >= MIN_RESULT_SIZE:
            LOGGER.info("%s 成功，结果 %d 字节", method.label, len(result))
            return result
        failures.append((method.label, "结果过小（很可能失败）"))

    raise AggregateTransformError(failures)
