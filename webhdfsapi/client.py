"""
WebHDFS 异步 Python API 客户端。

基于 Hadoop WebHDFS REST API（HTTP 方法 + ?op= 操作码 + JSON 信封）实现，
支持列目录、文件状态、读写、重命名、删除及属性设置。

请求 URL 形如：
    {base_url}webhdfs/v1{绝对路径}?[user.name={user}&]op={OP}[&{额外参数}]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Callable, Generic, Mapping, TypeVar

import httpx

from webhdfsapi.errors import ErrorEvent, MalformedResponseError, RemoteError, TransportError, WebHDFSError
from webhdfsapi.models import (
    BooleanResult,
    ContentSummary,
    DirectoryEntry,
    DirectoryListing,
    FileChecksum,
    decode,
    decode_home_directory,
)
from webhdfsapi.paths import resolve_path
from webhdfsapi.streams import ReadStream

logger = logging.getLogger(__name__)

PREFIX = "webhdfs/v1"

T = TypeVar("T")
ErrorHandler = Callable[[ErrorEvent], None]


class Operation(str, Enum):
    """WebHDFS 操作码（?op= 的取值）。"""

    LISTSTATUS = "LISTSTATUS"
    GETFILESTATUS = "GETFILESTATUS"
    GETHOMEDIRECTORY = "GETHOMEDIRECTORY"
    GETCONTENTSUMMARY = "GETCONTENTSUMMARY"
    GETFILECHECKSUM = "GETFILECHECKSUM"
    OPEN = "OPEN"
    MKDIRS = "MKDIRS"
    RENAME = "RENAME"
    DELETE = "DELETE"
    SETPERMISSION = "SETPERMISSION"
    SETOWNER = "SETOWNER"
    SETREPLICATION = "SETREPLICATION"
    SETTIMES = "SETTIMES"
    CREATE = "CREATE"

    @property
    def method(self) -> str:
        return OPERATION_METHODS[self]


OPERATION_METHODS: dict[Operation, str] = {
    Operation.LISTSTATUS: "GET",
    Operation.GETFILESTATUS: "GET",
    Operation.GETHOMEDIRECTORY: "GET",
    Operation.GETCONTENTSUMMARY: "GET",
    Operation.GETFILECHECKSUM: "GET",
    Operation.OPEN: "GET",
    Operation.MKDIRS: "PUT",
    Operation.RENAME: "PUT",
    Operation.SETPERMISSION: "PUT",
    Operation.SETOWNER: "PUT",
    Operation.SETREPLICATION: "PUT",
    Operation.SETTIMES: "PUT",
    Operation.CREATE: "PUT",
    Operation.DELETE: "DELETE",
}


def _normalize_base_url(base_url: str) -> str:
    """base_url 统一以 "/" 结尾，便于直接拼接 webhdfs/v1。"""
    return base_url.rstrip("/") + "/"


def _format_params(params: Mapping[str, Any] | None) -> str:
    """额外参数按原样拼为 k=v&k=v（不做百分号编码）；bool 输出 true/false，None 跳过。"""
    parts = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        parts.append(f"{key}={value}")
    return "&".join(parts)


def _parse_json(response: httpx.Response) -> tuple[Any, MalformedResponseError | None]:
    """解析响应体；空响应体返回 (None, None)。"""
    if not response.content.strip():
        return None, None
    try:
        return response.json(), None
    except ValueError as e:
        return None, MalformedResponseError(f"invalid JSON body: {e}")


@dataclass(frozen=True)
class Session:
    """
    会话：服务地址、用户名与家目录。

    由 WebHDFSClient.connect() 构造，家目录只获取一次，之后不可变。
    """

    base_url: str
    user: str | None = None
    home_directory: str = ""

    def resolve(self, path: str | None) -> str:
        return resolve_path(path, self.home_directory)

    def url_for(self, path: str | None, operation: Operation, params: Mapping[str, Any] | None = None) -> str:
        """构造操作 URL。"""
        url = f"{self.base_url}{PREFIX}{self.resolve(path)}?"
        if self.user:
            url += f"user.name={self.user}&"
        url += f"op={operation.value}"
        extra = _format_params(params)
        if extra:
            url += f"&{extra}"
        return url


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    invoke() 的结果：成功时 error 为 None；失败时 error 为 TransportError / RemoteError /
    MalformedResponseError。非 2xx 时仍会尝试解码响应体，value 与 payload 可能非空。
    """

    value: T | None = None
    status_code: int | None = None
    error: WebHDFSError | None = None
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        if self.error is not None:
            raise self.error
        return self.value


class WebHDFSClient:
    """
    WebHDFS 服务 API 客户端（异步）。

    推荐用 connect() 创建：会先请求一次 GETHOMEDIRECTORY，再返回可用的客户端。
    测试示例： await WebHDFSClient.connect("http://namenode:9870/", user="hdfs")
    """

    UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MiB，CREATE 流式读取本地文件的块大小

    def __init__(
        self,
        session: Session,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        raise_on_error: bool = True,
    ):
        """
        :param session: 会话（base_url 需以 / 结尾）
        :param http_client: 外部注入的 httpx.AsyncClient；注入时 aclose() 不会关闭它
        :param transport: 自定义传输层（如 httpx.MockTransport），仅在未注入 http_client 时使用
        :param timeout: 请求超时秒数
        :param verify: 是否验证 HTTPS 证书
        :param raise_on_error: False 时非 2xx 不抛异常，返回从响应体解码出的结果（可能为空值）
        """
        self.session = session
        self.raise_on_error = raise_on_error
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            verify=verify,
            follow_redirects=True,
        )
        self._error_handlers: list[ErrorHandler] = []

    @classmethod
    async def connect(
        cls,
        base_url: str,
        user: str | None = None,
        *,
        on_error: ErrorHandler | None = None,
        **kwargs: Any,
    ) -> WebHDFSClient:
        """
        创建客户端并获取家目录（只请求一次）。获取失败不抛异常，家目录保持为空串。

        :param base_url: 服务根地址，如 http://namenode:9870/
        :param user: 安全模式关闭时使用的 user.name
        :param on_error: 可选，先注册的错误处理函数（家目录请求失败也会通知）
        :param kwargs: 传给构造函数的其余参数（http_client / transport / timeout / verify / raise_on_error）
        """
        client = cls(Session(base_url=_normalize_base_url(base_url), user=user or None), **kwargs)
        if on_error is not None:
            client.on_error(on_error)
        home = await client._fetch_home_directory()
        client.session = replace(client.session, home_directory=home)
        return client

    async def _fetch_home_directory(self) -> str:
        result = await self.invoke("/", Operation.GETHOMEDIRECTORY)
        if not result.ok:
            logger.warning(f"GETHOMEDIRECTORY failed, relative paths resolve against '': {result.error}")
            return ""
        try:
            return decode_home_directory(result.value) if result.value is not None else ""
        except MalformedResponseError as e:
            logger.warning(f"GETHOMEDIRECTORY returned unexpected body: {e}")
            return ""

    @property
    def base_url(self) -> str:
        return self.session.base_url

    @property
    def user(self) -> str | None:
        return self.session.user

    @property
    def home_directory(self) -> str:
        return self.session.home_directory

    async def aclose(self) -> None:
        """关闭底层 HTTP 客户端（仅当由本对象创建时）。"""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> WebHDFSClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # ------------------------- 错误通知 -------------------------

    def on_error(self, handler: ErrorHandler) -> ErrorHandler:
        """注册错误处理函数，每次失败调用恰好通知一次；可作装饰器使用。"""
        self._error_handlers.append(handler)
        return handler

    def remove_error_handler(self, handler: ErrorHandler) -> None:
        try:
            self._error_handlers.remove(handler)
        except ValueError:
            pass

    def _notify(self, event: ErrorEvent) -> None:
        for handler in list(self._error_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in error handler {handler!r}: {e}", exc_info=True)

    # ------------------------- 请求分发 -------------------------

    async def _send(
        self,
        method: str,
        url: str,
        *,
        content: bytes | AsyncIterator[bytes] | None = None,
        headers: dict[str, str] | None = None,
        stream: bool = False,
        follow_redirects: bool | None = None,
    ) -> httpx.Response:
        """
        发送请求；失败通知后抛 TransportError，非 2xx 只通知不抛。

        follow_redirects=False 时重定向响应原样返回，不算失败；None 沿用 HTTP 客户端的设置。
        """
        options = {} if follow_redirects is None else {"follow_redirects": follow_redirects}
        logger.debug(f"{method} {url}")
        try:
            # GET 不带请求体
            request = self._client.build_request(
                method,
                url,
                content=content if method != "GET" else None,
                headers=headers,
            )
            response = await self._client.send(request, stream=stream, **options)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            # URL 非法、连接失败、流式请求体无法重放等都归为传输失败
            self._notify(ErrorEvent(exception=e))
            raise TransportError(e, url) from e
        if not response.is_success and not (response.is_redirect and follow_redirects is False):
            logger.debug(f"{method} {url} -> {response.status_code}")
            self._notify(ErrorEvent(response=response))
        return response

    async def invoke(
        self,
        path: str | None,
        operation: Operation,
        shape: type[T] | None = None,
        *,
        params: Mapping[str, Any] | None = None,
        content: bytes | AsyncIterator[bytes] | None = None,
        headers: dict[str, str] | None = None,
    ) -> OperationResult[T]:
        """
        执行一次 JSON 操作，返回 OperationResult（不抛 WebHDFSError）。

        :param path: 远程路径（相对 / 绝对 / 完整 URI）
        :param operation: 操作码，HTTP 方法由其决定
        :param shape: 期望的响应类型；None 时 value 为原始 JSON
        :param params: 额外 query 参数，按原样拼接
        :param content: 请求体（仅 CREATE 使用）
        """
        url = self.session.url_for(path, operation, params)
        return await self._invoke_url(operation.method, url, shape, content=content, headers=headers)

    async def _invoke_url(
        self,
        method: str,
        url: str,
        shape: type[T] | None = None,
        *,
        content: bytes | AsyncIterator[bytes] | None = None,
        headers: dict[str, str] | None = None,
    ) -> OperationResult[T]:
        try:
            response = await self._send(method, url, content=content, headers=headers)
        except TransportError as e:
            return OperationResult(error=e)
        return self._decode_response(response, shape)

    def _decode_response(self, response: httpx.Response, shape: type[T] | None) -> OperationResult[T]:
        payload, parse_error = _parse_json(response)
        value = None
        if parse_error is None and payload is not None:
            if shape is None:
                value = payload
            else:
                try:
                    value = decode(shape, payload)
                except MalformedResponseError as e:
                    parse_error = e
        error: WebHDFSError | None = parse_error
        if not response.is_success:
            error = RemoteError(response, payload if isinstance(payload, dict) else None)
        return OperationResult(value=value, status_code=response.status_code, error=error, payload=payload)

    def _checked(self, result: OperationResult[T]) -> T | None:
        # 宽松模式只放过 RemoteError；传输失败与 2xx 下的坏响应体仍然抛出
        if result.error is not None and (self.raise_on_error or not isinstance(result.error, RemoteError)):
            raise result.error
        return result.value

    async def _call(
        self,
        path: str | None,
        operation: Operation,
        shape: type[T],
        **kwargs: Any,
    ) -> T | None:
        return self._checked(await self.invoke(path, operation, shape, **kwargs))

    async def _call_bool(self, path: str | None, operation: Operation, **kwargs: Any) -> bool:
        result = await self._call(path, operation, BooleanResult, **kwargs)
        return result.value if result is not None else False

    # ------------------------- 读 -------------------------

    async def list_status(self, path: str) -> DirectoryListing:
        """列目录（LISTSTATUS），保持服务端返回顺序。"""
        result = await self._call(path, Operation.LISTSTATUS, DirectoryListing)
        return result if result is not None else DirectoryListing()

    async def get_file_status(self, path: str) -> DirectoryEntry:
        """文件或目录状态（GETFILESTATUS）。"""
        result = await self._call(path, Operation.GETFILESTATUS, DirectoryEntry)
        return result if result is not None else DirectoryEntry()

    async def get_home_directory(self) -> str:
        """向服务端请求家目录（GETHOMEDIRECTORY），不修改当前会话。"""
        value = self._checked(await self.invoke("/", Operation.GETHOMEDIRECTORY))
        return decode_home_directory(value) if value is not None else ""

    async def get_content_summary(self, path: str) -> ContentSummary:
        result = await self._call(path, Operation.GETCONTENTSUMMARY, ContentSummary)
        return result if result is not None else ContentSummary()

    async def get_file_checksum(self, path: str) -> FileChecksum:
        result = await self._call(path, Operation.GETFILECHECKSUM, FileChecksum)
        return result if result is not None else FileChecksum()

    async def open_file(self, path: str, offset: int = -1, length: int = -1) -> ReadStream:
        """
        打开文件（OPEN），返回定位到响应体起点的流。

        不检查状态码：即使服务端返回错误也会拿到流（错误仍会通知到 on_error），
        调用方应检查 stream.is_success 或读到 0 字节的情况。

        :param offset: 起始偏移，<= 0 表示从头
        :param length: 读取长度，<= 0 表示到文件末尾
        """
        params: dict[str, int] = {}
        if offset > 0:
            params["offset"] = offset
        if length > 0:
            params["length"] = length
        url = self.session.url_for(path, Operation.OPEN, params)
        response = await self._send(Operation.OPEN.method, url, stream=True)
        return ReadStream(response)

    async def read_file(
        self,
        path: str,
        save_to: str | Path | None = None,
        *,
        offset: int = -1,
        length: int = -1,
    ) -> bytes:
        """
        下载文件全部内容；非 2xx 抛 RemoteError。若提供 save_to 则同时写入本地。

        :param path: 远程路径
        :param save_to: 本地保存路径
        :return: 文件内容（bytes）
        """
        async with await self.open_file(path, offset, length) as stream:
            content = await stream.read()
        if not stream.is_success:
            payload, _ = _parse_json(stream.response)
            raise RemoteError(stream.response, payload if isinstance(payload, dict) else None)
        if save_to:
            Path(save_to).parent.mkdir(parents=True, exist_ok=True)
            Path(save_to).write_bytes(content)
        return content

    # ------------------------- 写 -------------------------

    async def create_directory(self, path: str) -> bool:
        """创建目录（MKDIRS），父目录会一并创建。"""
        return await self._call_bool(path, Operation.MKDIRS)

    async def rename(self, path: str, new_path: str) -> bool:
        return await self._call_bool(path, Operation.RENAME, params={"destination": new_path})

    async def delete(self, path: str, recursive: bool = False) -> bool:
        """删除文件或目录；非空目录需 recursive=True。"""
        return await self._call_bool(path, Operation.DELETE, params={"recursive": recursive})

    async def set_permission(self, path: str, permission: str) -> bool:
        """设置权限，permission 为八进制字符串，如 "755"。"""
        return await self._call_bool(path, Operation.SETPERMISSION, params={"permission": permission})

    async def set_owner(self, path: str, owner: str) -> bool:
        return await self._call_bool(path, Operation.SETOWNER, params={"owner": owner})

    async def set_group(self, path: str, group: str) -> bool:
        return await self._call_bool(path, Operation.SETOWNER, params={"group": group})

    async def set_replication(self, path: str, replication: int) -> bool:
        return await self._call_bool(path, Operation.SETREPLICATION, params={"replication": replication})

    async def set_access_time(self, path: str, access_time: int | str) -> bool:
        """设置访问时间（毫秒时间戳）。"""
        return await self._call_bool(path, Operation.SETTIMES, params={"accesstime": access_time})

    async def set_modification_time(self, path: str, modification_time: int | str) -> bool:
        """设置修改时间（毫秒时间戳）。"""
        return await self._call_bool(path, Operation.SETTIMES, params={"modificationtime": modification_time})

    def _upload_body_and_headers(
        self,
        content: BinaryIO | bytes,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> tuple[bytes | AsyncIterator[bytes], dict[str, str]]:
        """生成 CREATE 的 body 与 headers；可 seek 的文件对象按块读取（异步迭代器 + Content-Length），否则整块读入。on_progress(sent, total) 在流式时每块后调用。"""
        headers = {"Content-Type": "application/octet-stream"}
        if isinstance(content, bytes):
            headers["Content-Length"] = str(len(content))
            return content, headers
        try:
            content.seek(0, 2)
            size = content.tell()
            content.seek(0)
        except (AttributeError, OSError):
            body = content.read()
            headers["Content-Length"] = str(len(body))
            return body, headers

        async def stream_chunks() -> AsyncIterator[bytes]:
            sent = 0
            if on_progress:
                on_progress(0, size)
            while True:
                chunk = content.read(self.UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                sent += len(chunk)
                if on_progress:
                    on_progress(sent, size)
                yield chunk

        headers["Content-Length"] = str(size)
        return stream_chunks(), headers

    async def create_file(
        self,
        content: BinaryIO | bytes | str | Path,
        remote_path: str,
        *,
        overwrite: bool = True,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> bool:
        """
        上传文件（CREATE）。服务端无 JSON 响应体时视为成功。

        :param content: 文件内容（bytes 或文件对象），或本地文件路径（str / Path）
        :param remote_path: 远程路径
        :param overwrite: 是否覆盖已存在的文件
        :param on_progress: 可选，流式上传时每块后调用 on_progress(sent_bytes, total_bytes)
        """
        if isinstance(content, (str, Path)):
            with Path(content).open("rb") as fp:
                return await self.create_file(fp, remote_path, overwrite=overwrite, on_progress=on_progress)
        body, headers = self._upload_body_and_headers(content, on_progress)
        params = {"overwrite": overwrite}
        if isinstance(body, bytes):
            # 整块 body 可在 307 后重放，一步完成
            result = await self.invoke(
                remote_path, Operation.CREATE, BooleanResult, params=params, content=body, headers=headers
            )
        else:
            url = self.session.url_for(remote_path, Operation.CREATE, params)
            result = await self._create_streamed(url, body, headers)
        value = self._checked(result)
        return value is None or value.value

    async def _create_streamed(
        self,
        url: str,
        body: AsyncIterator[bytes],
        headers: dict[str, str],
    ) -> OperationResult[BooleanResult]:
        """
        两步 CREATE：流式 body 只能读一次，不能交给自动重定向重放。

        先不带数据、不跟随重定向地 PUT 到 NameNode，取 Location（DataNode 地址），
        再把数据 PUT 过去。NameNode 未重定向而直接返回 2xx 时，数据发往原 URL。
        """
        try:
            response = await self._send("PUT", url, follow_redirects=False)
        except TransportError as e:
            return OperationResult(error=e)
        if response.is_redirect and "Location" in response.headers:
            url = str(response.url.join(response.headers["Location"]))
            logger.debug(f"CREATE redirected to {url}")
        elif not response.is_success:
            return self._decode_response(response, BooleanResult)
        return await self._invoke_url("PUT", url, BooleanResult, content=body, headers=headers)
