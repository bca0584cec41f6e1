"""Per-connection output sinks.

A sink is the write side of one streaming response: the hub, the poller
and the keep-alive job write chunks into it, the WSGI response iterator
drains it.
"""

import itertools
import logging
import queue
import threading
from typing import Iterator, Protocol

logger = logging.getLogger(__name__)

_CLOSE = object()
_ids = itertools.count(1)


class SinkError(Exception):
    """Base class for sink write failures."""


class SinkClosedError(SinkError):
    """Write attempted on a closed sink."""


class SinkFullError(SinkError):
    """Sink buffer has no room left."""


class Sink(Protocol):
    def write(self, chunk: bytes) -> None: ...

    def close(self) -> None: ...

    def is_closed(self) -> bool: ...

    def capacity(self) -> int: ...


class QueueSink:
    """Bounded, thread-safe sink backed by ``queue.Queue``.

    Writes never block: a full buffer raises ``SinkFullError`` so the
    caller decides whether to drop or give up on the client.
    """

    def __init__(self, maxsize: int = 256, read_timeout: float = 1.0) -> None:
        self.sink_id = next(_ids)
        self.maxsize = maxsize
        self.read_timeout = read_timeout
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    def __repr__(self) -> str:
        state = "closed" if self.is_closed() else "open"
        return f"<QueueSink #{self.sink_id} {state}>"

    def write(self, chunk: bytes) -> None:
        if self._closed.is_set():
            raise SinkClosedError(f"sink #{self.sink_id} is closed")
        try:
            self._queue.put_nowait(chunk)
        except queue.Full:
            raise SinkFullError(f"sink #{self.sink_id} is full") from None

    def close(self) -> None:
        """Mark closed and wake the reader. Safe to call repeatedly."""
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._queue.put_nowait(_CLOSE)
        except queue.Full:
            # Reader is not blocked on a full queue; it sees the flag next get()
            pass

    def is_closed(self) -> bool:
        return self._closed.is_set()

    def capacity(self) -> int:
        if self._closed.is_set():
            return 0
        return max(self.maxsize - self._queue.qsize(), 0)

    def drain(self) -> Iterator[bytes]:
        """Yield chunks in write order until the sink is closed."""
        while True:
            try:
                item = self._queue.get(timeout=self.read_timeout)
            except queue.Empty:
                if self._closed.is_set():
                    return
                continue
            if item is _CLOSE or self._closed.is_set():
                return
            yield item
