"""路径解析：相对路径、绝对路径与完整 URI 统一为 HDFS 绝对路径。"""

from __future__ import annotations

from urllib.parse import urlparse


def resolve_path(path: str | None, home_directory: str = "") -> str:
    """
    将任意形式的路径解析为绝对路径（不校验路径合法性，交由服务端报错）。

    - 空 / None → "/"
    - 以 "/" 开头 → 原样返回
    - 含 ":"（如 hdfs://nn:8020/a/b）→ 取 URI 的 path 部分
    - 其他 → 相对 home_directory 拼接为 home_directory + "/" + path

    :param path: 用户给出的路径
    :param home_directory: 会话的家目录（获取失败时为空串）
    """
    if not path:
        return "/"
    if path.startswith("/"):
        return path
    if ":" in path:
        return urlparse(path).path or "/"
    return f"{home_directory}/{path}"
