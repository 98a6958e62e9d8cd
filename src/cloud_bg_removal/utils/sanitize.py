"""不可信字符串的清洗工具。

用户选择的文件路径、偏好设置中的账户名以及远端返回的资源 ID
最终都会被拼进 shell 命令或 URL，这里集中做转义与过滤。
"""

from __future__ import annotations

import os
import re
from typing import Iterable, Pattern, Union

# 允许的字符集合（正则字符类内部写法）。
CLOUD_NAME_CHARS = r"A-Za-z0-9_\-"
UPLOAD_PRESET_CHARS = CLOUD_NAME_CHARS
# 资源 ID 可能带有文件夹路径，额外允许斜杠与点。
ASSET_ID_CHARS = r"A-Za-z0-9_\-./"
METHOD_CODE_CHARS = r"A-Za-z0-9_:"

CLOUD_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

_UNSAFE_PATH_RE = re.compile(r'[<>:"|?*\x00-\x1f]')
_DOUBLE_QUOTE_SPECIALS_RE = re.compile(r'([\\"$`])')


def escape_for_shell(value: str) -> str:
    """用单引号包裹，内部单引号替换为 ``'\\''``，结果总是单个 shell 参数。"""

    return "'" + value.replace("'", "'\\''") + "'"


def shell_join(argv: Iterable[str]) -> str:
    """将参数列表拼成可直接粘贴到终端的命令行（用于日志）。"""

    return " ".join(escape_for_shell(str(arg)) for arg in argv)


def escape_for_double_quoted_context(value: str) -> str:
    """转义 ``\\ " $ ` `` 四个字符，供放入双引号片段使用。

    空格与括号不做处理：调用方必须保证该值只出现在双引号内部。
    """

    return _DOUBLE_QUOTE_SPECIALS_RE.sub(r"\\\1", value)


def sanitize_path(path: str) -> str:
    """去除控制字符与 ``< > : " | ? *`` 后规范化路径。

    不阻止 ``..`` 向上跳转，不能当作目录沙箱使用。
    """

    return os.path.normpath(_UNSAFE_PATH_RE.sub("", path))


def sanitize_filename_stem(stem: str) -> str:
    """将文件名主干中的危险字符替换为下划线。"""

    return _UNSAFE_PATH_RE.sub("_", stem)


def sanitize_identifier(value: str, allowed_chars: str) -> str:
    """删除不在 ``allowed_chars`` 字符类中的所有字符。"""

    return re.sub(f"[^{allowed_chars}]", "", value.strip())


def validate_identifier_format(value: str, pattern: Union[str, Pattern[str]]) -> bool:
    """清洗后的二次校验，不修改输入。"""

    if not value:
        return False
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    return compiled.fullmatch(value) is not None


def is_safe_asset_id(asset_id: str) -> bool:
    """资源 ID 需非空、不以斜杠开头且不含 ``..`` 路径段。"""

    if not asset_id or asset_id.startswith("/"):
        return False
    return ".." not in asset_id.split("/")
