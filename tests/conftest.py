"""测试共用的伪造 HTTP 会话与样例图片。"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: dict | None = None,
        reason: str = "OK",
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.reason = reason

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class FakeSession:
    """按顺序返回预设响应；元素为异常实例时直接抛出。"""

    def __init__(self, post=None, get=None) -> None:
        self.post_results = list(post or [])
        self.get_results = list(get or [])
        self.post_calls: list[dict] = []
        self.get_calls: list[str] = []

    def post(self, url, files=None, data=None, timeout=None):
        self.post_calls.append({"url": url, "files": files, "data": data, "timeout": timeout})
        return self._next(self.post_results)

    def get(self, url, timeout=None):
        self.get_calls.append(url)
        return self._next(self.get_results)

    @staticmethod
    def _next(results):
        result = results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def png_bytes(size: int = 2000) -> bytes:
    return PNG_SIGNATURE + b"\x00" * (size - len(PNG_SIGNATURE))


def json_response(body: str, status_code: int = 200) -> FakeResponse:
    return FakeResponse(status_code=status_code, content=body.encode("utf-8"), headers={"content-type": "application/json"})


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    def factory(name: str = "photo.png", size: tuple[int, int] = (64, 64), color: str = "blue") -> Path:
        path = tmp_path / name
        Image.new("RGB", size, color).save(path)
        return path

    return factory
