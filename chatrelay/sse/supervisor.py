"""Stream supervisor: creates, tracks and shuts down stream connections."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from ..config import config
from .connection import StreamConnection
from .hub import HubSource
from .poller import PollingSource
from .sink import QueueSink

if TYPE_CHECKING:
    from .hub import BroadcastHub
    from .poller import WatermarkPoller
    from .scheduler import StreamScheduler

logger = logging.getLogger(__name__)


class StreamUnavailableError(RuntimeError):
    """Raised when a stream is requested after shutdown began."""


class StreamSupervisor:
    """Owns the hub, the poller, the scheduler and every open connection."""

    def __init__(
        self,
        hub: BroadcastHub,
        poller: WatermarkPoller,
        scheduler: StreamScheduler,
        keepalive_interval: float | None = None,
        max_failed_pings: int | None = None,
        poll_interval: float | None = None,
        max_poll_failures: int | None = None,
        sink_queue_size: int | None = None,
        sink_read_timeout: float | None = None,
    ) -> None:
        self.hub = hub
        self.poller = poller
        self.scheduler = scheduler
        self.keepalive_interval = keepalive_interval if keepalive_interval is not None else config.KEEPALIVE_INTERVAL
        self.max_failed_pings = max_failed_pings if max_failed_pings is not None else config.MAX_FAILED_PINGS
        self.poll_interval = poll_interval if poll_interval is not None else config.POLL_INTERVAL
        self.max_poll_failures = max_poll_failures if max_poll_failures is not None else config.MAX_POLL_FAILURES
        self.sink_queue_size = sink_queue_size if sink_queue_size is not None else config.SINK_QUEUE_SIZE
        self.sink_read_timeout = sink_read_timeout if sink_read_timeout is not None else config.SINK_READ_TIMEOUT

        self._connections: set[StreamConnection] = set()
        self._lock = threading.Lock()
        self._accepting = True

    def start(self) -> None:
        self.scheduler.start()

    # ── Connections ──

    def open_push(self) -> StreamConnection:
        """Open a hub-fed stream that starts with the connected acknowledgement."""
        return self._open(HubSource(self.hub), send_connected=True)

    def open_polling(self) -> StreamConnection:
        """Open a stream fed by a per-connection watermark poll job."""
        source = PollingSource(self.poller, interval=self.poll_interval, max_failures=self.max_poll_failures)
        return self._open(source, send_connected=False)

    def _open(self, source: Any, send_connected: bool) -> StreamConnection:
        conn = StreamConnection(
            source,
            self.scheduler,
            sink=QueueSink(maxsize=self.sink_queue_size, read_timeout=self.sink_read_timeout),
            keepalive_interval=self.keepalive_interval,
            max_failed_pings=self.max_failed_pings,
            send_connected=send_connected,
            on_close=self._forget,
        )
        with self._lock:
            if not self._accepting:
                raise StreamUnavailableError("stream supervisor is shut down")
            self._connections.add(conn)
        return conn.open()

    def _forget(self, conn: StreamConnection) -> None:
        with self._lock:
            self._connections.discard(conn)

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    # ── Shutdown ──

    def shutdown(self) -> None:
        """Close every open connection and stop the scheduler. Idempotent."""
        with self._lock:
            was_accepting, self._accepting = self._accepting, False
            open_conns = list(self._connections)

        for conn in open_conns:
            conn.close("server shutdown")
        self.scheduler.stop()
        if was_accepting:
            logger.info(f"Stream supervisor shut down ({len(open_conns)} connection(s) closed)")

    def status(self) -> dict[str, Any]:
        with self._lock:
            conns = list(self._connections)
            accepting = self._accepting
        return {
            "accepting": accepting,
            "connections": len(conns),
            "push": sum(1 for c in conns if c.kind == "push"),
            "polling": sum(1 for c in conns if c.kind == "polling"),
            "hub": self.hub.stats(),
        }
