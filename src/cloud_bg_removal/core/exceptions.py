"""项目内使用的自定义异常定义。"""

from __future__ import annotations

from typing import Optional


class BackgroundRemovalError(Exception):
    """基础异常类型。"""


class ConfigurationError(BackgroundRemovalError):
    """云端账户名或上传预设缺失、不合法时抛出。"""


class ValidationError(BackgroundRemovalError):
    """输入图片未通过校验。"""


class CompressionError(BackgroundRemovalError):
    """压缩大图失败。"""


class UploadError(BackgroundRemovalError):
    """上传失败（网络、响应解析或远端报错）。"""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransformError(BackgroundRemovalError):
    """单个背景移除方法失败。"""


class TransformTimeoutError(TransformError):
    """背景移除请求超时。"""


class AggregateTransformError(BackgroundRemovalError):
    """所有背景移除方法均失败。"""

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        self.failures = failures
        lines = [f"{label}: {reason}" for label, reason in failures]
        super().__init__("所有背景移除方法均失败:\n" + "\n".join(lines))


class FilesystemError(BackgroundRemovalError):
    """输出目录创建或结果写入失败。"""


class UnknownError(BackgroundRemovalError):
    """无法归类的异常。"""


class PipelineBusyError(BackgroundRemovalError):
    """已有任务在运行时再次提交。"""
