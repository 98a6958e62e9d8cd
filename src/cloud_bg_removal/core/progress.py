"""状态更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from cloud_bg_removal.core.models import PipelineState


@dataclass(slots=True)
class StateUpdate:
    """流水线推进过程中的状态信息。"""

    state: PipelineState
    message: str = ""
    output_path: Optional[str] = None


StateCallback = Optional[Callable[[StateUpdate], None]]
