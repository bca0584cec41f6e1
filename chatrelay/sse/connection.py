"""Streaming connection handler.

One ``StreamConnection`` owns one text/event-stream response for its whole
life. It runs a keep-alive job next to a delivery source (hub push or
watermark poll) and tears everything down exactly once, whichever side
ends the stream first.

    OPENING -> ACTIVE -> CLOSING -> CLOSED

Every resource acquired while opening is registered on an ``ExitStack``;
``close()`` unwinds it in reverse order (keep-alive job, delivery source,
sink) and can be called from any state, any thread, any number of times.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import ExitStack
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Protocol

from .events import connected_event, ping_event
from .sink import QueueSink, SinkClosedError, SinkFullError

if TYPE_CHECKING:
    from .scheduler import StreamScheduler

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class ConnectionState(str, Enum):
    OPENING = "opening"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class DeliverySource(Protocol):
    kind: str

    def attach(self, conn: StreamConnection) -> None: ...


class StreamConnection:
    """One client's event stream: sink + keep-alive + delivery source."""

    def __init__(
        self,
        source: DeliverySource,
        scheduler: StreamScheduler,
        sink: Optional[QueueSink] = None,
        keepalive_interval: float = 30.0,
        max_failed_pings: int = 3,
        send_connected: bool = False,
        on_close: Optional[Callable[[StreamConnection], None]] = None,
    ) -> None:
        self.conn_id = f"{source.kind}-{next(_ids)}"
        self.source = source
        self.scheduler = scheduler
        self.sink = sink if sink is not None else QueueSink()
        self.keepalive_interval = keepalive_interval
        self.max_failed_pings = max_failed_pings
        self.send_connected = send_connected
        self.on_close = on_close
        self.failed_pings = 0
        self.close_reason: Optional[str] = None

        self._state = ConnectionState.OPENING
        self._lock = threading.Lock()
        self._resources = ExitStack()

    def __repr__(self) -> str:
        return f"<StreamConnection {self.conn_id} {self._state.value}>"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def kind(self) -> str:
        return self.source.kind

    def is_alive(self) -> bool:
        """Writes are only attempted while this is True."""
        return self._state in (ConnectionState.OPENING, ConnectionState.ACTIVE)

    def add_cleanup(self, callback: Callable[..., Any], *args: Any) -> None:
        """Register a teardown step; steps run in reverse registration order.

        Once closing has begun the step runs immediately instead, so a
        resource acquired by a racing ``open()`` is still released.
        """
        with self._lock:
            if self.is_alive():
                self._resources.callback(callback, *args)
                return
        callback(*args)

    # ── Lifecycle ──

    def open(self) -> StreamConnection:
        """Send the optional acknowledgement, start the source and keep-alive."""
        self.add_cleanup(self.sink.close)
        try:
            if self.send_connected:
                self.send(connected_event())
            self.source.attach(self)
            job_id = self.scheduler.every(
                self.keepalive_interval,
                self._keepalive,
                job_id=f"keepalive:{self.conn_id}",
                name=f"Keep-alive for {self.conn_id}",
            )
            self.add_cleanup(self.scheduler.cancel, job_id)
        except Exception:
            logger.error(f"Failed to open stream {self.conn_id}", exc_info=True)
            self.close("open failed")
            raise

        with self._lock:
            if self._state is ConnectionState.OPENING:
                self._state = ConnectionState.ACTIVE
        logger.info(f"Stream {self.conn_id} opened")
        return self

    def close(self, reason: str = "closed") -> bool:
        """Run cleanup once. Returns False if the connection was already closing."""
        with self._lock:
            if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return False
            self._state = ConnectionState.CLOSING
            self.close_reason = reason

        try:
            self._resources.close()
        except Exception:
            logger.error(f"Cleanup of stream {self.conn_id} raised", exc_info=True)
        finally:
            self._state = ConnectionState.CLOSED
            logger.info(f"Stream {self.conn_id} closed ({reason})")
            if self.on_close is not None:
                self.on_close(self)
        return True

    # ── Writes ──

    def send(self, chunk: bytes) -> bool:
        """Write a chunk. Returns True if it was buffered for the client.

        Rejected without a write attempt once the connection is closing.
        A full sink drops the chunk; any other write failure closes the
        connection.
        """
        if not self.is_alive():
            return False
        try:
            self.sink.write(chunk)
            return True
        except SinkFullError:
            logger.warning(f"Stream {self.conn_id} buffer full, dropping event")
            return False
        except SinkClosedError:
            self.close("sink closed")
            return False
        except Exception as e:
            logger.warning(f"Write to stream {self.conn_id} failed: {e}")
            self.close("write failed")
            return False

    def _keepalive(self) -> None:
        if not self.is_alive():
            return
        try:
            self.sink.write(ping_event())
        except SinkClosedError:
            self.close("sink closed")
            return
        except SinkFullError:
            self.failed_pings += 1
            logger.warning(
                f"Keep-alive for {self.conn_id} failed ({self.failed_pings}/{self.max_failed_pings})"
            )
            if self.failed_pings >= self.max_failed_pings:
                self.close("too many failed pings")
            return
        except Exception as e:
            logger.warning(f"Keep-alive for {self.conn_id} failed: {e}")
            self.close("write failed")
            return
        self.failed_pings = 0
        logger.debug(f"Keep-alive sent to {self.conn_id}")

    def stream(self) -> EventStream:
        return EventStream(self)


class EventStream:
    """WSGI response body for a connection.

    The server calls ``close()`` when the response ends or the client goes
    away; that closes the connection even if iteration never started.
    """

    def __init__(self, conn: StreamConnection) -> None:
        self.conn = conn

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self.conn.sink.drain()
        finally:
            self.conn.close("stream ended")

    def close(self) -> None:
        self.conn.close("client disconnected")
