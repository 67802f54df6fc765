"""Buffered writer where every flush becomes exactly one server-side write."""

from enum import Enum
from typing import Optional

from ..constants import DEFAULT_BUFFER_SIZE, DEFAULT_TIMEOUT
from ..core.model import ArgumentError, CallOptions, StreamClosedError
from ..core.retry import ExponentialOnThrottlePolicy, NoRetryPolicy, RetryPolicy
from ..logger import log
from ..protocol import operations
from ..protocol.dispatcher import RequestDispatcher


class WriteMode(str, Enum):
    CREATE = "create"                        # first flush creates the file
    APPEND = "append"                        # append at the end of an existing file
    CONCURRENT_APPEND = "concurrent_append"  # server picks the offset


class WriteBuffer:
    """Collects writes and sends them in buffer-sized pieces.

    Record boundaries are kept: bytes from one flush are never split across
    two server writes, and bytes from two flushes are never merged. Appends
    are sent without retries, since a failed append may still have been
    applied by the server.
    """

    def __init__(self, dispatcher: RequestDispatcher, path: str, mode: WriteMode = WriteMode.CREATE, *,
                 overwrite: bool = False, permission: Optional[str] = None, autocreate: bool = True,
                 buffer_size: int = DEFAULT_BUFFER_SIZE, retry_policy: Optional[RetryPolicy] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        if buffer_size <= 0:
            raise ArgumentError(f"Buffer size cannot be zero or less: {buffer_size}")
        self.path = path
        self.mode = WriteMode(mode)
        self.overwrite = overwrite
        self.permission = permission
        self.autocreate = autocreate
        self._dispatcher = dispatcher
        self._timeout = timeout
        # create without overwrite is not idempotent: a retry could fail on our own file
        if overwrite:
            self._create_policy = retry_policy if retry_policy is not None else ExponentialOnThrottlePolicy()
        else:
            self._create_policy = NoRetryPolicy()
        self._capacity = buffer_size
        self._buffer = bytearray(buffer_size)
        self._cursor = 0
        self._created = self.mode is not WriteMode.CREATE
        self._closed = False
        self.flush_count = 0
        log.debug("WriteBuffer created for %s (mode %s, client %s)", path, self.mode.value,
                  dispatcher.client_id)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def created(self) -> bool:
        return self._created

    @property
    def buffered(self) -> int:
        """Bytes waiting for the next flush."""
        return self._cursor

    @property
    def buffer_size(self) -> int:
        return self._capacity

    def _check_open(self):
        if self._closed:
            raise StreamClosedError(f"I/O operation on closed stream for {self.path}")

    def readable(self) -> bool:
        return False

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def _send(self, data: bytes) -> None:
        """One server-side write of `data`."""
        if not self._created:
            log.debug("create %s with %d bytes", self.path, len(data))
            operations.create(self._dispatcher, self.path, self.overwrite, data, self.permission,
                              CallOptions(timeout=self._timeout, retry_policy=self._create_policy))
            self._created = True
        elif self.mode is WriteMode.CONCURRENT_APPEND:
            log.debug("concurrent append of %d bytes to %s", len(data), self.path)
            operations.concurrent_append(self._dispatcher, self.path, data, self.autocreate,
                                         CallOptions(timeout=self._timeout, retry_policy=NoRetryPolicy()))
        else:
            log.debug("append of %d bytes to %s", len(data), self.path)
            operations.append(self._dispatcher, self.path, data,
                              CallOptions(timeout=self._timeout, retry_policy=NoRetryPolicy()))
        self.flush_count += 1

    def write(self, data) -> int:
        """Buffer `data`, sending full buffers as they fill up. Returns len(data)."""
        self._check_open()
        view = memoryview(data).cast("B")
        total = len(view)
        if total == 0:
            return 0

        if total > self._capacity:
            # keep the boundary of what was written before this call
            self.flush()
            while len(view) > self._capacity:
                self._send(bytes(view[:self._capacity]))
                view = view[self._capacity:]

        if len(view) > self._capacity - self._cursor:
            self.flush()
        self._buffer[self._cursor:self._cursor + len(view)] = view
        self._cursor += len(view)

        if self._cursor >= self._capacity:
            self.flush()
        return total

    def flush(self) -> None:
        """Send buffered bytes as one write. Nothing buffered, nothing sent.

        On failure the bytes stay buffered and the error propagates.
        """
        self._check_open()
        if self._cursor == 0:
            return
        self._send(bytes(self._buffer[:self._cursor]))
        self._cursor = 0

    def set_buffer_size(self, size: int) -> None:
        """Flush what is buffered, then resize."""
        self._check_open()
        if size <= 0:
            raise ArgumentError(f"Buffer size cannot be zero or less: {size}")
        if size == self._capacity:
            return
        self.flush()
        self._capacity = size
        self._buffer = bytearray(size)

    def close(self) -> None:
        """Flush and close. Closing twice is fine."""
        if self._closed:
            return
        if self._cursor or not self._created:
            # a create stream that never wrote anything still creates an empty file
            self._send(bytes(self._buffer[:self._cursor]))
            self._cursor = 0
        self._closed = True
        log.debug("WriteBuffer closed for %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
