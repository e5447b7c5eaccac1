"""
WebHDFS 客户端异常与错误通知事件。

- TransportError：尚未拿到可用响应（URL 非法、连接/DNS/超时、请求体无法重放）
- RemoteError：HTTP 状态码不在 2xx，响应可供检查
- MalformedResponseError：有响应体，但无法解析为期望的结构
- CancellationError：调用方取消（即 asyncio.CancelledError）
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

CancellationError = asyncio.CancelledError


class WebHDFSError(Exception):
    """所有 webhdfsapi 异常的基类。"""


class TransportError(WebHDFSError):
    """请求没能完成，未收到可用响应。cause 为底层 httpx 异常。"""

    def __init__(self, cause: BaseException, url: str | None = None):
        self.cause = cause
        self.url = url
        where = f" ({url})" if url else ""
        super().__init__(f"{type(cause).__name__}: {cause}{where}")


class RemoteError(WebHDFSError):
    """
    服务端返回非 2xx。

    :param response: 原始 httpx 响应
    :param payload: 响应体解析出的 JSON 对象（如 {"RemoteException": {...}}），无则为 None
    """

    def __init__(self, response: httpx.Response, payload: dict[str, Any] | None = None):
        self.response = response
        self.payload = payload
        remote = self.remote_exception
        detail = remote.get("message") if remote else None
        text = f"HTTP {response.status_code}"
        if detail:
            text += f": {detail}"
        super().__init__(text)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def remote_exception(self) -> dict[str, Any]:
        """WebHDFS 错误信封中的 RemoteException（exception/javaClassName/message），没有则为空 dict。"""
        if not self.payload:
            return {}
        remote = self.payload.get("RemoteException")
        return remote if isinstance(remote, dict) else {}


class MalformedResponseError(WebHDFSError):
    """响应体无法解码为期望的类型。"""


@dataclass(frozen=True)
class ErrorEvent:
    """错误通知：response 与 exception 二者只有一个非 None。"""

    response: httpx.Response | None = None
    exception: BaseException | None = None
