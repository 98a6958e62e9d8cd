"""上传图片至云端并提取资源 ID。"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional, Tuple

import requests

from cloud_bg_removal.core.config import UPLOAD_HOST, TimeoutConfig
from cloud_bg_removal.core.exceptions import ConfigurationError, UploadError
from cloud_bg_removal.core.models import ImageFile
from cloud_bg_removal.utils.logging import DiagnosticLog, NullDiagnosticLog
from cloud_bg_removal.utils.sanitize import (
    CLOUD_NAME_CHARS,
    CLOUD_NAME_RE,
    UPLOAD_PRESET_CHARS,
    escape_for_double_quoted_context,
    sanitize_identifier,
    validate_identifier_format,
)

LOGGER = logging.getLogger(__name__)

STAGE = "UPLOAD"
PREVIEW_LENGTH = 200
SEPARATOR = "=" * 40


def check_credentials(cloud_name: str, upload_preset: str) -> Tuple[str, str]:
    """清洗并校验账户名与上传预设，区分“未配置”与“含非法字符”。"""

    if not cloud_name or not cloud_name.strip():
        raise ConfigurationError("未配置 Cloudinary 云端账户名 (cloud name)，请先在配置中设置")
    if not upload_preset or not upload_preset.strip():
        raise ConfigurationError("未配置上传预设 (upload preset)，请先在配置中设置")

    clean_cloud = sanitize_identifier(cloud_name, CLOUD_NAME_CHARS)
    clean_preset = sanitize_identifier(upload_preset, UPLOAD_PRESET_CHARS)
    if not clean_cloud:
        raise ConfigurationError("云端账户名无效：只包含非法字符")
    if not clean_preset:
        raise ConfigurationError("上传预设无效：只包含非法字符")
    if not validate_identifier_format(clean_cloud, CLOUD_NAME_RE):
        raise ConfigurationError("云端账户名只能包含字母、数字、连字符与下划线")
    return clean_cloud, clean_preset


def upload_url(cloud_name: str, host: str = UPLOAD_HOST) -> str:
    return f"{host}/v1_1/{cloud_name}/image/upload"


def upload_image(
    image: ImageFile,
    cloud_name: str,
    upload_preset: str,
    *,
    session: Optional[requests.Session] = None,
    diagnostics: Optional[DiagnosticLog] = None,
    timeouts: Optional[TimeoutConfig] = None,
    host: str = UPLOAD_HOST,
) -> str:
    """以 multipart 表单上传图片，返回远端资源 ID (``public_id``)。"""

    cloud, preset = check_credentials(cloud_name, upload_preset)
    session = session or requests.Session()
    diagnostics = diagnostics or NullDiagnosticLog()
    timeouts = timeouts or TimeoutConfig()

    try:
        file_size = image.size
    except OSError as exc:
        raise UploadError(f"文件不存在: {image.path}") from exc

    url = upload_url(cloud, host)
    diagnostics.write(STAGE, SEPARATOR)
    diagnostics.write(STAGE, "开始上传")
    diagnostics.write(STAGE, f"文件: {image.name}")
    diagnostics.write(STAGE, f"完整路径: {image.path}")
    diagnostics.write(STAGE, f"文件大小: {file_size / 1024:.2f} KB ({file_size} bytes)")
    diagnostics.write(STAGE, f"扩展名: {image.extension}")
    diagnostics.write(STAGE, f"Cloud name: {cloud}")
    diagnostics.write(STAGE, f"Upload preset: {preset}")
    diagnostics.write(
        STAGE,
        "等效命令（已脱敏）: "
        f'curl -s -X POST "{url}" -F "file=@[FILE_PATH]" '
        f'-F "upload_preset={escape_for_double_quoted_context(preset)}" '
        f"--max-time {timeouts.transfer:.0f} --connect-timeout {timeouts.connect:.0f}",
    )

    start = time.monotonic()
    try:
        response = _post_with_deadline(session, url, image, preset, timeouts)
        elapsed = time.monotonic() - start
        diagnostics.write(STAGE, f"请求完成，耗时 {elapsed:.2f}s，HTTP {response.status_code}")
        body = response.text or ""
        diagnostics.write(STAGE, f"响应长度: {len(body)} bytes")
        diagnostics.write(STAGE, f"响应预览: {body[:PREVIEW_LENGTH]}")
        public_id = parse_upload_response(body, response.status_code, diagnostics)
    except (requests.RequestException, OSError, UploadError) as exc:
        elapsed = time.monotonic() - start
        diagnostics.write(STAGE, f"上传失败，耗时 {elapsed:.2f}s")
        diagnostics.write(STAGE, f"异常类型: {type(exc).__name__}")
        diagnostics.write(STAGE, f"异常信息: {exc}")
        diagnostics.write(STAGE, SEPARATOR)
        raise classify_upload_failure(exc, elapsed, file_size, timeouts) from exc

    diagnostics.write(STAGE, f"上传成功，public_id: {public_id}")
    diagnostics.write(STAGE, SEPARATOR)
    LOGGER.info("上传完成 %s -> %s", image.name, public_id)
    return public_id


def _post_with_deadline(
    session: requests.Session,
    url: str,
    image: ImageFile,
    preset: str,
    timeouts: TimeoutConfig,
) -> requests.Response:
    """在 ``upload_overall`` 秒内完成上传请求，超时抛出 ``requests.Timeout``。

    ``requests`` 的超时只约束单次连接与读写；整体预算由工作线程外的等待保证。
    """

    def send() -> requests.Response:
        with image.path.open("rb") as handle:
            return session.post(
                url,
                files={"file": (image.name, handle)},
                data={"upload_preset": preset},
                timeout=(timeouts.connect, timeouts.transfer),
            )

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloudinary-upload")
    future = executor.submit(send)
    try:
        return future.result(timeout=timeouts.upload_overall)
    except FutureTimeoutError as exc:
        future.cancel()
        raise requests.Timeout(f"upload exceeded overall timeout of {timeouts.upload_overall:.0f}s") from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def parse_upload_response(body: str, status_code: Optional[int] = None, diagnostics: Optional[DiagnosticLog] = None) -> str:
    """解析上传响应 JSON，返回 ``public_id``。"""

    diagnostics = diagnostics or NullDiagnosticLog()
    if not body.strip():
        raise UploadError("Cloudinary 返回空响应", status_code)

    try:
        data = json.loads(body)
    except ValueError as exc:
        diagnostics.write(STAGE, f"JSON 解析失败，完整响应: {body}")
        raise UploadError(f"Cloudinary 返回的 JSON 无效: {body[:PREVIEW_LENGTH]}", status_code) from exc

    if not isinstance(data, dict):
        raise UploadError(f"Cloudinary 返回的 JSON 无效: {body[:PREVIEW_LENGTH]}", status_code)

    error = data.get("error")
    if error:
        diagnostics.write(STAGE, f"Cloudinary API 错误: {json.dumps(error, ensure_ascii=False)}")
        message = error.get("message") if isinstance(error, dict) else None
        raise UploadError(f"Cloudinary 错误: {message or json.dumps(error, ensure_ascii=False)}", status_code)

    public_id = data.get("public_id")
    if not public_id:
        diagnostics.write(STAGE, f"缺少 public_id，完整响应: {json.dumps(data, ensure_ascii=False)}")
        raise UploadError("上传成功但未返回 public_id", status_code)
    return str(public_id)


def classify_upload_failure(
    exc: BaseException,
    elapsed: float,
    file_size: int,
    timeouts: TimeoutConfig,
) -> UploadError:
    """根据异常类型与文本给出更具体、可操作的错误信息。"""

    text = str(exc)
    lowered = text.lower()
    status_code = getattr(exc, "status_code", None)
    size_kb = file_size / 1024

    if isinstance(exc, FileNotFoundError) or "no such file" in lowered or "enoent" in lowered:
        return UploadError("文件不存在或无法访问")

    if isinstance(exc, requests.Timeout) or "timeout" in lowered or "timed out" in lowered:
        if elapsed >= timeouts.upload_overall - 5:
            return UploadError(f"上传超时（{elapsed:.0f}s）- 已达到整体超时上限")
        return UploadError(f"上传超时（{elapsed:.0f}s）- 传输超时 (文件: {size_kb:.1f}KB)")

    if status_code in (401, 403) or "401" in text or "403" in text:
        return UploadError("认证失败：请检查云端账户名与上传预设", status_code)
    if status_code == 404 or "404" in text:
        return UploadError("找不到该云端账户，请确认 Cloudinary cloud name", status_code)

    return UploadError(f"{text}（耗时 {elapsed:.1f}s，文件: {size_kb:.1f}KB）", status_code)
