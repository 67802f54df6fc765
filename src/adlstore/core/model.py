from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from ..constants import DEFAULT_TIMEOUT


@dataclass(slots=True)
class CallResult:
    """Outcome of one logical call, filled in by the dispatcher."""
    successful: bool = False
    status_code: int = 0
    status_message: str | None = None
    request_id: str | None = None          # server assigned
    num_retries: int = 0
    last_call_latency: int = 0             # milliseconds, last attempt only
    response_content_length: int = 0
    response_chunked: bool = False
    remote_exception_name: str | None = None
    remote_exception_message: str | None = None
    remote_exception_class_name: str | None = None
    error: Exception | None = None         # transport level, no response
    message: str | None = None             # client side diagnostics
    body: Any = None                       # open streamed response, caller closes

    @property
    def is_eof(self) -> bool:
        """True when a ranged read ran past the end of the file."""
        return self.successful and self.status_code in (403, 416)


@dataclass(slots=True)
class CallOptions:
    timeout: float = DEFAULT_TIMEOUT
    request_id: str | None = None          # generated when absent
    retry_policy: Any = None               # NoRetryPolicy when absent


class DirectoryEntryType(str, Enum):
    FILE = "FILE"
    DIRECTORY = "DIRECTORY"


@dataclass(slots=True)
class DirectoryEntry:
    name: str
    full_name: str
    length: int
    group: str
    user: str
    last_access_time: datetime
    last_modified_time: datetime
    type: DirectoryEntryType
    permission: str


@dataclass(slots=True)
class ContentSummary:
    length: int
    directory_count: int
    file_count: int
    space_consumed: int


@dataclass(slots=True)
class AclStatus:
    entries: List[Any] = field(default_factory=list)   # AclEntry
    owner: str = ""
    group: str = ""
    permission: str = ""


class ArgumentError(ValueError):
    """Raised for invalid arguments; never sent to the server."""
    pass


class StreamClosedError(ValueError):
    """Raised when a closed read or write stream is used."""
    pass


class StoreError(IOError):
    """Raised when a call to the store fails, after any retries."""

    def __init__(self, message: str, *, status_code: int = 0, status_message: Optional[str] = None,
                 request_id: Optional[str] = None, num_retries: int = 0, last_call_latency: int = 0,
                 response_content_length: int = 0, remote_exception_name: Optional[str] = None,
                 remote_exception_message: Optional[str] = None,
                 remote_exception_class_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status_message = status_message
        self.request_id = request_id
        self.num_retries = num_retries
        self.last_call_latency = last_call_latency
        self.response_content_length = response_content_length
        self.remote_exception_name = remote_exception_name
        self.remote_exception_message = remote_exception_message
        self.remote_exception_class_name = remote_exception_class_name

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"HTTP{self.status_code}")
        if self.remote_exception_name:
            parts.append(f"{self.remote_exception_name}: {self.remote_exception_message}")
        if self.request_id:
            parts.append(f"request id {self.request_id}")
        parts.append(f"retries {self.num_retries}")
        return " | ".join(parts)

    @property
    def transient(self) -> bool:
        """Whether the failure is of a kind that a later retry might clear."""
        if isinstance(self, TransportError):
            return True
        code = self.status_code
        return code in (408, 429) or (code >= 500 and code not in (501, 505))

    @classmethod
    def from_result(cls, result: CallResult, default_message: str) -> StoreError:
        """Build the exception matching a failed CallResult."""
        message = result.message or default_message
        if result.error is not None:
            exc_cls: type[StoreError] = TransportError
        elif result.status_code == 0:
            exc_cls = StoreError
        else:
            exc_cls = _REMOTE_EXCEPTIONS.get(result.remote_exception_name or "") \
                or _STATUS_EXCEPTIONS.get(result.status_code, ProtocolError)
        exc = exc_cls(
            message,
            status_code=result.status_code,
            status_message=result.status_message,
            request_id=result.request_id,
            num_retries=result.num_retries,
            last_call_latency=result.last_call_latency,
            response_content_length=result.response_content_length,
            remote_exception_name=result.remote_exception_name,
            remote_exception_message=result.remote_exception_message,
            remote_exception_class_name=result.remote_exception_class_name,
        )
        exc.__cause__ = result.error
        return exc


class TransportError(StoreError):
    """Connection or socket failure before any response was received."""
    pass


class ProtocolError(StoreError):
    """The server answered with a non-success status."""
    pass


class PathNotFoundError(ProtocolError, FileNotFoundError):
    pass


class PathExistsError(ProtocolError, FileExistsError):
    pass


class AccessDeniedError(ProtocolError, PermissionError):
    pass


_REMOTE_EXCEPTIONS = {
    "FileNotFoundException": PathNotFoundError,
    "FileAlreadyExistsException": PathExistsError,
    "AccessControlException": AccessDeniedError,
    "SecurityException": AccessDeniedError,
}

_STATUS_EXCEPTIONS = {
    403: AccessDeniedError,
    404: PathNotFoundError,
    409: PathExistsError,
}
