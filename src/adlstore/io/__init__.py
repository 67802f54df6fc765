"""I/O layer for adlstore - buffered streams over remote files."""

# Re-export these for import convenience
from .base import ReadableSeekable, WritableFlushable
from .read_buffer import ReadBuffer
from .write_buffer import WriteBuffer, WriteMode

__all__ = ["ReadableSeekable", "WritableFlushable", "ReadBuffer", "WriteBuffer", "WriteMode"]
