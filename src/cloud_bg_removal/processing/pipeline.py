"""处理流水线：校验、压缩、上传、去背景与保存。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Union

import requests

from cloud_bg_removal.core.config import MB, RemovalConfig
from cloud_bg_removal.core.exceptions import (
    AggregateTransformError,
    BackgroundRemovalError,
    PipelineBusyError,
    TransformTimeoutError,
    UnknownError,
    UploadError,
    ValidationError,
)
from cloud_bg_removal.core.models import ImageFile, PipelineState, ProcessingResult, TransformMethod
from cloud_bg_removal.core.output_manager import OutputManager
from cloud_bg_removal.core.progress import StateCallback, StateUpdate
from cloud_bg_removal.core.temp_files import TempFileRegistry
from cloud_bg_removal.processing.background_remover import try_background_removal
from cloud_bg_removal.processing.compressor import Resizer, compress_image, pillow_resize
from cloud_bg_removal.processing.uploader import upload_image
from cloud_bg_removal.processing.validation import MimeProber, probe_mime_type, validate_image
from cloud_bg_removal.utils.logging import DiagnosticLog
from cloud_bg_removal.utils.sanitize import sanitize_path

LOGGER = logging.getLogger(__name__)

SUMMARY_LIMIT = 100

Opener = Optional[Callable[[Path], object]]


class BackgroundRemovalPipeline:
    """单次只允许一个运行的背景移除流水线。

    状态只会向前推进；任一阶段失败即跳到 ``ERROR``，只有 :meth:`reset`
    能回到 ``IDLE``。本次运行创建的临时文件在报告结果之前一定会被删除。
    """

    def __init__(
        self,
        config: RemovalConfig,
        *,
        session: Optional[requests.Session] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        state_callback: StateCallback = None,
        mime_prober: Optional[MimeProber] = probe_mime_type,
        resizer: Resizer = pillow_resize,
        opener: Opener = None,
        temp_dir: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self._owns_diagnostics = diagnostics is None
        self.diagnostics = diagnostics or DiagnosticLog(config.log_file)
        self.state_callback = state_callback
        self.mime_prober = mime_prober
        self.resizer = resizer
        self.opener = opener
        self.temp_dir = temp_dir
        self.state = PipelineState.IDLE
        self.message = ""
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def reset(self) -> None:
        if self._running:
            raise PipelineBusyError("任务运行中，无法重置")
        self.state = PipelineState.IDLE
        self.message = ""
        self._notify()

    def run(self, selected: Union[str, Path]) -> ProcessingResult:
        """处理一张图片，返回成功保存的路径或结构化的失败信息。"""

        if self._running:
            raise PipelineBusyError("已有任务正在处理，请等待当前任务完成")
        if not self.config.is_configured():
            message = "请先配置 Cloudinary 云端账户名与上传预设"
            return ProcessingResult.failed(message, message, [message])
        if not str(selected).strip():
            message = "未选择文件，请选择一张图片"
            return ProcessingResult.failed(message, message, [message])

        if self.state in (PipelineState.COMPLETE, PipelineState.ERROR):
            self.reset()

        self._running = True
        source: Optional[Path] = None
        try:
            with TempFileRegistry(self.temp_dir) as registry:
                source = Path(sanitize_path(str(selected)))
                result = self._execute(ImageFile(source), registry)
        except Exception as exc:  # noqa: BLE001
            return self._fail(exc, source)
        finally:
            self._running = False

        self._open_result(result.output_path)
        self._advance(PipelineState.COMPLETE, "背景移除成功！", output_path=result.output_path)
        return result

    def close(self) -> None:
        if self._owns_diagnostics:
            self.diagnostics.close()

    def __enter__(self) -> "BackgroundRemovalPipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _execute(self, source: ImageFile, registry: TempFileRegistry) -> ProcessingResult:
        self._advance(PipelineState.VALIDATING, "正在校验图片...")
        validation = validate_image(
            source.path, max_size=self.config.hard_size_limit, mime_prober=self.mime_prober
        )
        if not validation.valid:
            raise ValidationError(validation.reason or "无效的图片文件")

        image = source
        size = image.size
        if size > self.config.soft_size_limit:
            self._advance(PipelineState.COMPRESSING, f"正在压缩图片 ({size / MB:.2f}MB)...")
            image = compress_image(
                image,
                registry,
                max_dimension=self.config.compression_max_dimension,
                resizer=self.resizer,
            )

        self._advance(PipelineState.UPLOADING, "正在上传到 Cloudinary...")
        asset_id = upload_image(
            image,
            self.config.cloud_name,
            self.config.upload_preset,
            session=self.session,
            diagnostics=self.diagnostics,
            timeouts=self.config.timeouts,
            host=self.config.upload_host,
        )

        self._advance(PipelineState.PROCESSING, "正在移除背景（可能需要一些时间）...")
        data = try_background_removal(
            asset_id,
            self.config.cloud_name,
            session=self.session,
            timeouts=self.config.timeouts,
            host=self.config.delivery_host,
            on_attempt=self._on_method_attempt,
        )

        self._advance(PipelineState.SAVING, "正在保存图片...")
        output = OutputManager(self.config.output_directory)
        output.ensure_directory()
        destination = output.decide_destination(source.path)
        written = output.save_bytes(data, destination)
        return ProcessingResult.saved(destination, written)

    def _on_method_attempt(self, method: TransformMethod) -> None:
        self._advance(PipelineState.PROCESSING, f"正在尝试 {method.label}...")

    def _advance(self, state: PipelineState, message: str, output_path: Optional[Path] = None) -> None:
        if state is not PipelineState.ERROR and state.order < self.state.order:
            raise RuntimeError(f"非法的状态回退: {self.state.value} -> {state.value}")
        self.state = state
        self.message = message
        LOGGER.info("[%s] %s", state.value, message)
        self._notify(output_path)

    def _notify(self, output_path: Optional[Path] = None) -> None:
        if not self.state_callback:
            return
        self.state_callback(
            StateUpdate(
                state=self.state,
                message=self.message,
                output_path=str(output_path) if output_path else None,
            )
        )

    def _fail(self, exc: Exception, source: Optional[Path]) -> ProcessingResult:
        if not isinstance(exc, BackgroundRemovalError):
            LOGGER.exception("未预期的异常：%s", exc)
            exc = UnknownError(str(exc) or "发生未知错误")

        message = str(exc) or "发生未知错误"
        detail = message

        if source is not None:
            try:
                detail += f"\n\n文件: {source.name} ({source.stat().st_size / 1024:.1f} KB)"
            except OSError:
                pass

        lowered = message.lower()
        if isinstance(exc, (UploadError, TransformTimeoutError)) or "超时" in message or "timeout" in lowered:
            detail += f"\n\n详细日志已保存至:\n{self.config.log_file}"

        summary = message if len(message) <= SUMMARY_LIMIT else f"{message[:SUMMARY_LIMIT]}..."
        self._advance(PipelineState.ERROR, detail)
        if isinstance(exc, AggregateTransformError):
            errors = [f"{label}: {reason}" for label, reason in exc.failures]
        else:
            errors = [message]
        return ProcessingResult.failed(summary, detail, errors)

    def _open_result(self, output_path: Optional[Path]) -> None:
        if not self.opener or output_path is None:
            return
        try:
            self.opener(output_path)
        except OSError as exc:
            LOGGER.info("打开结果失败：%s", exc)
