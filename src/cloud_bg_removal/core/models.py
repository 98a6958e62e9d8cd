"""核心数据模型定义。"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(slots=True, frozen=True)
class ImageFile:
    """待处理的图片文件；压缩后以新的实例替代，不做原地修改。"""

    path: Path

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    @property
    def mime_type(self) -> Optional[str]:
        guessed, _ = mimetypes.guess_type(self.path.name)
        return guessed

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(slots=True, frozen=True)
class TransformMethod:
    """远端背景移除操作码及其展示名称。"""

    code: str
    label: str


# 按优先级排列，依次尝试。
TRANSFORM_METHODS: tuple[TransformMethod, ...] = (
    TransformMethod(code="e_background_removal", label="AI Background Removal"),
    TransformMethod(code="e_bgremoval:auto", label="Auto-detect Background"),
    TransformMethod(code="e_make_transparent", label="Edge-based Removal"),
)


class PipelineState(str, Enum):
    """流水线状态。成功时只能前进，失败可从任意状态跳至 ERROR，仅 reset 回到 IDLE。"""

    IDLE = "idle"
    VALIDATING = "validating"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def order(self) -> int:
        return _STATE_ORDER.index(self)


_STATE_ORDER = [
    PipelineState.IDLE,
    PipelineState.VALIDATING,
    PipelineState.COMPRESSING,
    PipelineState.UPLOADING,
    PipelineState.PROCESSING,
    PipelineState.SAVING,
    PipelineState.COMPLETE,
    PipelineState.ERROR,
]


@dataclass(slots=True)
class ProcessingResult:
    """一次流水线运行的最终产出。"""

    success: bool
    output_path: Optional[Path] = None
    size: Optional[int] = None
    summary: Optional[str] = None
    detail: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def saved(cls, output_path: Path, size: int) -> "ProcessingResult":
        return cls(
            success=True,
            output_path=output_path,
            size=size,
            summary=f"已保存至 {output_path.name}",
            detail=f"图片已保存至: {output_path}\n文件大小: {size / 1024:.1f} KB",
        )

    @classmethod
    def failed(cls, summary: str, detail: str, errors: list[str]) -> "ProcessingResult":
        return cls(success=False, summary=summary, detail=detail, errors=errors)
