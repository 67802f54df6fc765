"""Capability protocols for the buffered store streams."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReadableSeekable(Protocol):
    """Protocol for random-access readers over a remote file."""

    length: int  # known file length

    def read(self, size: int = -1) -> bytes:
        """Return up to `size` bytes; fewer is normal. b"" means end of file."""
        ...

    def readinto(self, b) -> int:
        ...

    def seek(self, offset: int, whence: int = 0) -> int:
        ...

    def tell(self) -> int:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class WritableFlushable(Protocol):
    """Protocol for buffered writers where one flush is one server-side write."""

    def write(self, data) -> int:
        ...

    def flush(self) -> None:
        ...

    def close(self) -> None:
        ...
