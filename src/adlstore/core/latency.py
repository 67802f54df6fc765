"""Client-perceived latency reporting.

Each entry is one comma separated line:

    request id, retry number, latency (ms), error code, operation, size, client id

The error code is empty for successful attempts. Up to three entries ride along on the next outgoing request,
separated by semicolons.
"""

import queue
from typing import Optional

QUEUE_SIZE = 256
MAX_PER_LINE = 3


class LatencyTracker:
    """Bounded, non-blocking queue of call statistics."""

    def __init__(self, maxsize: int = QUEUE_SIZE):
        self._queue: "queue.Queue[str]" = queue.Queue(maxsize=maxsize)
        self._disabled = False

    @property
    def disabled(self) -> bool:
        return self._disabled

    def disable(self) -> None:
        """Stop recording and drop what is queued. There is no way back."""
        self._disabled = True
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def add_latency(self, request_id: str, retry_num: int, latency: int, operation: str,
                    size: int, client_id: int) -> None:
        self._offer(f"{request_id},{retry_num},{latency},,{operation},{size},{client_id}")

    def add_error(self, request_id: str, retry_num: int, latency: int, error: str, operation: str,
                  size: int, client_id: int) -> None:
        self._offer(f"{request_id},{retry_num},{latency},{error},{operation},{size},{client_id}")

    def _offer(self, line: str) -> None:
        if self._disabled:
            return
        try:
            self._queue.put_nowait(line)
        except queue.Full:
            pass  # dropped; stats never hold up the data path

    def drain(self) -> Optional[str]:
        """Pop up to three entries joined for the latency header, or None."""
        if self._disabled:
            return None
        entries = []
        while len(entries) < MAX_PER_LINE:
            try:
                entries.append(self._queue.get_nowait())
            except queue.Empty:
                break
        if not entries:
            return None
        return ";".join(entries)

    def __len__(self) -> int:
        return self._queue.qsize()


# shared by every client in the process unless one is injected
default_tracker = LatencyTracker()
