"""OPEN 操作返回的字节流：直接暴露响应体，不检查状态码。"""

from __future__ import annotations

from pathlib import Path
from typing import Any, AsyncIterator

import httpx

DOWNLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MiB


class ReadStream:
    """
    已定位到响应体起点的只读流。

    无论服务端返回什么状态码都会拿到该对象；调用方可检查 status_code / is_success，
    或读取到 0 字节时自行判断。使用完需 aclose()，或用 async with。
    """

    def __init__(self, response: httpx.Response):
        self.response = response

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def is_success(self) -> bool:
        return self.response.is_success

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    async def aiter_bytes(self, chunk_size: int | None = DOWNLOAD_CHUNK_SIZE) -> AsyncIterator[bytes]:
        async for chunk in self.response.aiter_bytes(chunk_size):
            yield chunk

    async def read(self) -> bytes:
        """读取剩余全部内容。"""
        return await self.response.aread()

    async def save(self, save_to: str | Path) -> int:
        """按块写入本地文件，返回写入字节数。"""
        path = Path(save_to)
        path.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with path.open("wb") as fp:
            async for chunk in self.aiter_bytes():
                fp.write(chunk)
                written += len(chunk)
        return written

    async def aclose(self) -> None:
        await self.response.aclose()

    async def __aenter__(self) -> ReadStream:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
