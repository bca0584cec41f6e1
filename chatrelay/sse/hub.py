"""Thread-safe broadcast hub fanning message batches out to live sinks."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from .events import message_event
from .sink import SinkFullError

if TYPE_CHECKING:
    from .sink import Sink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadcastResult:
    delivered: int = 0
    skipped: int = 0
    pruned: int = 0


class Subscription:
    """Unsubscribe handle returned by ``BroadcastHub.subscribe``.

    Cancelling is idempotent; a handle for an invalid sink does nothing.
    """

    def __init__(self, hub: BroadcastHub | None, sink: Sink | None) -> None:
        self._hub = hub
        self.sink = sink

    def cancel(self) -> None:
        hub, self._hub = self._hub, None
        if hub is not None and self.sink is not None:
            hub.remove(self.sink)

    __call__ = cancel

    @property
    def active(self) -> bool:
        return self._hub is not None and self._hub.is_subscribed(self.sink)


class BroadcastHub:
    """In-process publish/subscribe registry of sinks.

    Registry mutations and snapshots happen under ``_lock``; whole
    broadcasts are serialized by ``_broadcast_lock`` so every sink sees
    batches in the order they were broadcast. Each sink may carry an
    ``on_dead`` callback, run after the sink is pruned.
    """

    def __init__(self) -> None:
        self._subscribers: dict[Sink, Optional[Callable[[Sink], None]]] = {}
        self._lock = threading.Lock()
        self._broadcast_lock = threading.Lock()
        self._stats = {"broadcasts": 0, "delivered": 0, "skipped": 0, "pruned": 0}

    def subscribe(self, sink: Sink | None, on_dead: Optional[Callable[[Sink], None]] = None) -> Subscription:
        """Register a sink. Returns a handle whose ``cancel()`` unsubscribes it.

        ``on_dead(sink)`` is called if a broadcast later prunes the sink.
        """
        if sink is None:
            logger.error("Attempted to subscribe with an invalid sink")
            return Subscription(None, None)

        with self._lock:
            if sink in self._subscribers:
                logger.debug(f"Sink {sink!r} already subscribed")
                if on_dead is not None:
                    self._subscribers[sink] = on_dead
            else:
                self._subscribers[sink] = on_dead
                logger.debug(f"Sink {sink!r} subscribed ({len(self._subscribers)} total)")
        return Subscription(self, sink)

    def unsubscribe(self, handle: Subscription | Sink | None) -> None:
        """Remove a subscription (handle or sink). Unknown entries are ignored."""
        if handle is None:
            return
        if isinstance(handle, Subscription):
            handle.cancel()
        else:
            self.remove(handle)

    def remove(self, sink: Sink) -> None:
        with self._lock:
            if sink in self._subscribers:
                del self._subscribers[sink]
                logger.debug(f"Sink {sink!r} unsubscribed ({len(self._subscribers)} remaining)")

    def is_subscribed(self, sink: Sink | None) -> bool:
        with self._lock:
            return sink in self._subscribers

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"subscribers": len(self._subscribers), **self._stats}

    def broadcast(self, messages: Sequence[Any]) -> BroadcastResult:
        """Write one ``message`` event carrying ``messages`` to every sink.

        Closed sinks and sinks whose write fails are pruned after the pass.
        Full sinks are skipped for this batch. Never raises.
        """
        if not messages:
            logger.debug("Broadcast called with no messages, ignoring")
            return BroadcastResult()

        with self._broadcast_lock:
            with self._lock:
                targets = list(self._subscribers)
            if not targets:
                logger.debug("No subscribers to broadcast to")
                return BroadcastResult()

            try:
                chunk = message_event(messages)
            except (TypeError, ValueError):
                logger.error("Failed to serialize broadcast batch", exc_info=True)
                return BroadcastResult()

            delivered = skipped = 0
            dead: list[Sink] = []
            for sink in targets:
                try:
                    if sink.is_closed():
                        dead.append(sink)
                        continue
                    if sink.capacity() <= 0:
                        skipped += 1
                        continue
                    sink.write(chunk)
                    delivered += 1
                except SinkFullError:
                    skipped += 1
                except Exception as e:
                    logger.warning(f"Broadcast to {sink!r} failed: {e}")
                    dead.append(sink)

            callbacks = []
            with self._lock:
                for sink in dead:
                    on_dead = self._subscribers.pop(sink, None)
                    if on_dead is not None:
                        callbacks.append((on_dead, sink))
                remaining = len(self._subscribers)
                self._stats["broadcasts"] += 1
                self._stats["delivered"] += delivered
                self._stats["skipped"] += skipped
                self._stats["pruned"] += len(dead)

        if skipped:
            logger.warning(f"Broadcast skipped {skipped} sink(s) with no buffer capacity")
        if dead:
            logger.info(f"Removed {len(dead)} dead subscriber(s), {remaining} remaining")
        for on_dead, sink in callbacks:
            try:
                on_dead(sink)
            except Exception:
                logger.error(f"Dead-sink callback for {sink!r} raised", exc_info=True)
        logger.debug(
            f"Broadcast of {len(messages)} message(s) complete. "
            f"Success: {delivered}, Skipped: {skipped}, Failed: {len(dead)}"
        )
        return BroadcastResult(delivered=delivered, skipped=skipped, pruned=len(dead))


class HubSource:
    """Delivery source that subscribes a connection's sink to the hub."""

    kind = "push"

    def __init__(self, hub: BroadcastHub) -> None:
        self.hub = hub

    def attach(self, conn: Any) -> None:
        subscription = self.hub.subscribe(conn.sink, on_dead=lambda _sink: conn.close("write failed"))
        conn.add_cleanup(subscription.cancel)
