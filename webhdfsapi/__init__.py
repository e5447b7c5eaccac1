"""WebHDFS (Hadoop REST 文件系统网关) 异步 Python API 客户端 - https://hadoop.apache.org/docs/stable/hadoop-project-dist/hadoop-hdfs/WebHDFS.html"""

from webhdfsapi.client import Operation, OperationResult, Session, WebHDFSClient
from webhdfsapi.errors import (
    CancellationError,
    ErrorEvent,
    MalformedResponseError,
    RemoteError,
    TransportError,
    WebHDFSError,
)
from webhdfsapi.models import (
    BooleanResult,
    ContentSummary,
    DirectoryEntry,
    DirectoryListing,
    FileChecksum,
    FileType,
    decode,
)
from webhdfsapi.paths import resolve_path
from webhdfsapi.streams import ReadStream

__all__ = [
    "WebHDFSClient",
    "Session",
    "Operation",
    "OperationResult",
    "ReadStream",
    "resolve_path",
    "decode",
    "BooleanResult",
    "DirectoryEntry",
    "DirectoryListing",
    "ContentSummary",
    "FileChecksum",
    "FileType",
    "WebHDFSError",
    "TransportError",
    "RemoteError",
    "MalformedResponseError",
    "CancellationError",
    "ErrorEvent",
]
