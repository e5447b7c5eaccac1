"""
WebHDFS 响应数据模型（与 WebHDFS REST API 的 JSON 信封一致）。

每种类型都由一个 JSON 对象构造一次，之后不可变；缺失字段取零值（0 / "" / False），
类型不符（如整数位置上是字符串）抛 MalformedResponseError。

- BooleanResult: {"boolean": true}
- DirectoryEntry: {"FileStatus": {...}} 或 LISTSTATUS 列表中的单项
- DirectoryListing: {"FileStatuses": {"FileStatus": [...]}}
- ContentSummary: {"ContentSummary": {...}} 内层对象
- FileChecksum: {"FileChecksum": {...}} 内层对象，checksum 来自 "bytes"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, TypeVar

from webhdfsapi.errors import MalformedResponseError

T = TypeVar("T")


class FileType:
    """DirectoryEntry.type 的取值。"""

    FILE = "FILE"
    DIRECTORY = "DIRECTORY"


def _read_int(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if value is None:
        return 0
    # bool 是 int 的子类，需单独排除
    if isinstance(value, bool):
        raise MalformedResponseError(f"field {key!r}: expected integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise MalformedResponseError(f"field {key!r}: expected integer, got {type(value).__name__}")


def _read_str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedResponseError(f"field {key!r}: expected string, got {type(value).__name__}")
    return value


def _read_bool(obj: dict[str, Any], key: str) -> bool:
    value = obj.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MalformedResponseError(f"field {key!r}: expected boolean, got {type(value).__name__}")
    return value


def _read_object(obj: Any, key: str) -> dict[str, Any]:
    value = obj.get(key) if isinstance(obj, dict) else None
    if not isinstance(value, dict):
        raise MalformedResponseError(f"missing object {key!r}")
    return value


def _unwrap(obj: dict[str, Any], key: str) -> dict[str, Any]:
    """{"ContentSummary": {...}} 这类单键信封取内层；否则原样返回。"""
    inner = obj.get(key)
    return inner if isinstance(inner, dict) else obj


@dataclass(frozen=True)
class BooleanResult:
    value: bool = False

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> BooleanResult:
        return cls(value=_read_bool(obj, "boolean"))


@dataclass(frozen=True)
class DirectoryEntry:
    """文件/目录状态（GETFILESTATUS 或 LISTSTATUS 的单项）。"""

    access_time: int = 0
    block_size: int = 0
    group: str = ""
    length: int = 0
    modification_time: int = 0
    owner: str = ""
    path_suffix: str = ""
    # 八进制字符串，如 "755"
    permission: str = ""
    replication: int = 0
    type: str = ""

    @property
    def is_directory(self) -> bool:
        return self.type == FileType.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.type == FileType.FILE

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> DirectoryEntry:
        status = _unwrap(obj, "FileStatus")
        return cls(
            access_time=_read_int(status, "accessTime"),
            block_size=_read_int(status, "blockSize"),
            group=_read_str(status, "group"),
            length=_read_int(status, "length"),
            modification_time=_read_int(status, "modificationTime"),
            owner=_read_str(status, "owner"),
            path_suffix=_read_str(status, "pathSuffix"),
            permission=_read_str(status, "permission"),
            replication=_read_int(status, "replication"),
            type=_read_str(status, "type"),
        )


@dataclass(frozen=True)
class DirectoryListing:
    """
    LISTSTATUS 结果，保持服务端返回顺序。

    directories 与 files 互斥且合起来覆盖全部条目：非 DIRECTORY 的条目都归入 files。
    """

    entries: tuple[DirectoryEntry, ...] = ()

    @property
    def directories(self) -> list[DirectoryEntry]:
        return [e for e in self.entries if e.is_directory]

    @property
    def files(self) -> list[DirectoryEntry]:
        return [e for e in self.entries if not e.is_directory]

    def __iter__(self) -> Iterator[DirectoryEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> DirectoryListing:
        statuses = _read_object(obj, "FileStatuses").get("FileStatus")
        if not isinstance(statuses, list):
            raise MalformedResponseError("missing array 'FileStatuses.FileStatus'")
        entries = []
        for item in statuses:
            if not isinstance(item, dict):
                raise MalformedResponseError(f"FileStatus item: expected object, got {type(item).__name__}")
            entries.append(DirectoryEntry.from_json(item))
        return cls(entries=tuple(entries))


@dataclass(frozen=True)
class ContentSummary:
    directory_count: int = 0
    file_count: int = 0
    length: int = 0
    quota: int = 0
    space_consumed: int = 0
    space_quota: int = 0

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> ContentSummary:
        summary = _unwrap(obj, "ContentSummary")
        return cls(
            directory_count=_read_int(summary, "directoryCount"),
            file_count=_read_int(summary, "fileCount"),
            length=_read_int(summary, "length"),
            quota=_read_int(summary, "quota"),
            space_consumed=_read_int(summary, "spaceConsumed"),
            space_quota=_read_int(summary, "spaceQuota"),
        )


@dataclass(frozen=True)
class FileChecksum:
    algorithm: str = ""
    # 十六进制
    checksum: str = ""
    # 校验和字节数（不是字符串长度）
    length: int = 0

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> FileChecksum:
        data = _unwrap(obj, "FileChecksum")
        return cls(
            algorithm=_read_str(data, "algorithm"),
            checksum=_read_str(data, "bytes"),
            length=_read_int(data, "length"),
        )


SHAPES = (BooleanResult, DirectoryEntry, DirectoryListing, ContentSummary, FileChecksum)


def decode(shape: type[T], obj: Any) -> T:
    """
    将一个 JSON 对象解码为指定类型。

    :param shape: SHAPES 中的一种
    :param obj: 已解析的 JSON 值，必须是 dict
    :raises MalformedResponseError: 不是对象或字段类型不符
    """
    if shape not in SHAPES:
        raise TypeError(f"unsupported response shape: {shape!r}")
    if not isinstance(obj, dict):
        raise MalformedResponseError(f"{shape.__name__}: expected JSON object, got {type(obj).__name__}")
    return shape.from_json(obj)  # type: ignore[attr-defined]


def decode_home_directory(obj: Any) -> str:
    """GETHOMEDIRECTORY 响应：{"Path": "/user/hdfs"}。"""
    if not isinstance(obj, dict):
        raise MalformedResponseError(f"home directory: expected JSON object, got {type(obj).__name__}")
    return _read_str(obj, "Path")
