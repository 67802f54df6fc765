"""Buffered random-access reader over a remote file."""

import io
from contextlib import closing
from typing import Optional

import requests

from ..constants import DEFAULT_BUFFER_SIZE, DEFAULT_TIMEOUT
from ..core.model import ArgumentError, CallOptions, StreamClosedError, TransportError
from ..core.retry import ExponentialOnThrottlePolicy, RetryPolicy
from ..logger import log
from ..protocol import operations
from ..protocol.dispatcher import RequestDispatcher

_CHUNK = 64 * 1024  # socket read size while filling the buffer


class ReadBuffer:
    """Reads a remote file through one buffer window, fetched `capacity` bytes at a time.

    The window covers file bytes [buffer_start, buffer_start + limit). The next
    byte handed out is at buffer_start + read_offset, so
    0 <= read_offset <= limit <= capacity always holds. Reads may be short:
    a call never crosses the end of the window.
    """

    def __init__(self, dispatcher: RequestDispatcher, path: str, length: int, *,
                 buffer_size: int = DEFAULT_BUFFER_SIZE,
                 retry_policy: Optional[RetryPolicy] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        if buffer_size <= 0:
            raise ArgumentError(f"Buffer size cannot be zero or less: {buffer_size}")
        if length < 0:
            raise ArgumentError(f"File length cannot be negative: {length}")
        self.path = path
        self.length = length
        self._dispatcher = dispatcher
        self._retry_policy = retry_policy if retry_policy is not None else ExponentialOnThrottlePolicy()
        self._timeout = timeout
        self._capacity = buffer_size
        self._buffer = bytearray(buffer_size)
        self._buffer_start = 0
        self._read_offset = 0
        self._limit = 0
        self._closed = False
        self.requests_made = 0
        self.bytes_fetched = 0
        log.debug("ReadBuffer created for %s (length %d, client %s)", path, length, dispatcher.client_id)

    # --- state ---

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffer_size(self) -> int:
        return self._capacity

    def _check_open(self):
        if self._closed:
            raise StreamClosedError(f"I/O operation on closed stream for {self.path}")

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def tell(self) -> int:
        self._check_open()
        return self._buffer_start + self._read_offset

    def available(self) -> int:
        """Bytes that can be read without a network call."""
        self._check_open()
        return self._limit - self._read_offset

    # --- reading ---

    def _fill(self) -> int:
        """Fetch the window that starts at the current position.

        Returns the number of bytes now in the buffer, or -1 at end of file.
        """
        if self._read_offset < self._limit:
            return 0  # unread data left, keep it
        start = self._buffer_start + self._limit
        if start >= self.length:
            return -1

        self._buffer_start = start
        self._read_offset = 0
        self._limit = 0

        want = min(self._capacity, self.length - start)
        options = CallOptions(timeout=self._timeout, retry_policy=self._retry_policy)
        body = operations.open(self._dispatcher, self.path, start, want, options)
        self.requests_made += 1
        if body is None:
            return -1

        with closing(body), memoryview(self._buffer) as view:
            try:
                for chunk in body.iter_content(chunk_size=_CHUNK):
                    n = min(len(chunk), want - self._limit)
                    view[self._limit:self._limit + n] = chunk[:n]
                    self._limit += n
                    if self._limit >= want:
                        break
            except requests.RequestException as e:
                self._limit = 0
                raise TransportError(f"Error reading data from {self.path}") from e

        self.bytes_fetched += self._limit
        log.debug("fetched %d bytes at offset %d from %s", self._limit, start, self.path)
        return self._limit

    def readinto(self, b) -> int:
        """Copy up to len(b) buffered bytes into `b`. Returns 0 at end of file."""
        self._check_open()
        with memoryview(b) as target:
            if target.nbytes == 0:
                return 0
            if self._read_offset == self._limit and self._fill() <= 0:
                return 0
            n = min(target.nbytes, self._limit - self._read_offset)
            target.cast("B")[:n] = self._buffer[self._read_offset:self._read_offset + n]
        self._read_offset += n
        return n

    def read(self, size: int = -1) -> bytes:
        """Return up to `size` bytes (all remaining bytes when negative)."""
        self._check_open()
        if size is None or size < 0:
            return self.readall()
        if size == 0:
            return b""
        if self._read_offset == self._limit and self._fill() <= 0:
            return b""
        n = min(size, self._limit - self._read_offset)
        data = bytes(self._buffer[self._read_offset:self._read_offset + n])
        self._read_offset += n
        return data

    def readall(self) -> bytes:
        chunks = []
        while True:
            data = self.read(self._capacity)
            if not data:
                break
            chunks.append(data)
        return b"".join(chunks)

    # --- positioning ---

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move to a new position; inside the current window no data is refetched."""
        self._check_open()
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self.tell() + offset
        elif whence == io.SEEK_END:
            pos = self.length + offset
        else:
            raise ArgumentError(f"invalid whence ({whence})")

        if pos < 0:
            raise EOFError("Cannot seek to before the beginning of file")
        if pos > self.length:
            raise EOFError("Cannot seek past end of file")

        if self._buffer_start <= pos <= self._buffer_start + self._limit:
            self._read_offset = pos - self._buffer_start
        else:
            self._buffer_start = pos
            self._read_offset = 0
            self._limit = 0
        return pos

    def skip(self, n: int) -> int:
        """Move `n` bytes, clamped to the file. Returns how far the position moved."""
        current = self.tell()
        target = min(max(current + n, 0), self.length)
        self.seek(target)
        return target - current

    def unbuffer(self) -> None:
        """Drop buffered bytes but keep the position; the next read goes to the network."""
        self._check_open()
        self._buffer_start = self.tell()
        self._read_offset = 0
        self._limit = 0

    def set_buffer_size(self, size: int) -> None:
        """Resize the buffer. Whatever is buffered is thrown away."""
        self._check_open()
        if size <= 0:
            raise ArgumentError(f"Buffer size cannot be zero or less: {size}")
        if size == self._capacity:
            return
        self.unbuffer()
        self._capacity = size
        self._buffer = bytearray(size)

    # --- lifecycle ---

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            log.debug("ReadBuffer closed for %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
