"""Watermark poller: pull new messages from the store on an interval.

The store is queried inclusively at the watermark timestamp and records
already delivered at that exact timestamp are filtered out by id, so two
messages sharing an ``updatedAt`` are both delivered exactly once even when
they straddle a poll boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, Sequence

from .events import message_event

if TYPE_CHECKING:
    from ..messages.models import Message
    from .connection import StreamConnection

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)


class MessageStore(Protocol):
    def find(
        self,
        collection: str,
        where: dict[str, dict[str, Any]] | None = None,
        sort: str | None = None,
        limit: int = 10,
    ) -> list[Message]: ...


@dataclass(frozen=True)
class Watermark:
    updated_at: datetime = EPOCH
    seen_ids: frozenset[str] = field(default_factory=frozenset)

    def covers(self, message: Message) -> bool:
        """True if the message was already delivered under this watermark."""
        if message.updated_at < self.updated_at:
            return True
        return message.updated_at == self.updated_at and message.id in self.seen_ids

    def advance(self, batch: Sequence[Message]) -> Watermark:
        newest = max(m.updated_at for m in batch)
        if newest < self.updated_at:
            return self
        ids = {m.id for m in batch if m.updated_at == newest}
        if newest == self.updated_at:
            ids |= self.seen_ids
        return Watermark(updated_at=newest, seen_ids=frozenset(ids))


class WatermarkPoller:
    """Stateless query half of the polling strategy; shared by connections."""

    def __init__(self, store: MessageStore, page_size: int = 10, collection: str = "messages") -> None:
        self.store = store
        self.page_size = page_size
        self.collection = collection

    def poll(self, watermark: Watermark) -> tuple[Watermark, list[Message]]:
        """Return ``(new_watermark, records)`` for records newer than ``watermark``.

        Records come back newest first, at most ``page_size`` of them. The
        watermark is unchanged when nothing new was found.
        """
        rows = self.store.find(
            self.collection,
            where={"updatedAt": {"greater_than_equal": watermark.updated_at}},
            sort="-updatedAt",
            limit=self.page_size + len(watermark.seen_ids),
        )
        fresh = [m for m in rows if not watermark.covers(m)][: self.page_size]
        if not fresh:
            return watermark, []
        return watermark.advance(fresh), fresh


class PollingSource:
    """Delivery source that runs a ``WatermarkPoller`` for one connection."""

    kind = "polling"

    def __init__(self, poller: WatermarkPoller, interval: float = 1.0, max_failures: int = 5) -> None:
        self.poller = poller
        self.interval = interval
        self.max_failures = max_failures
        self.watermark = Watermark()
        self.failures = 0
        self._conn: StreamConnection | None = None

    def attach(self, conn: StreamConnection) -> None:
        self._conn = conn
        # First poll inline so a fresh connection gets its backlog at once
        self.tick()
        job_id = conn.scheduler.every(
            self.interval, self.tick, job_id=f"poll:{conn.conn_id}", name=f"Poll messages for {conn.conn_id}"
        )
        conn.add_cleanup(conn.scheduler.cancel, job_id)

    def tick(self) -> None:
        conn = self._conn
        if conn is None or not conn.is_alive():
            return

        try:
            watermark, records = self.poller.poll(self.watermark)
        except Exception as e:
            self.failures += 1
            logger.warning(f"Poll for {conn.conn_id} failed ({self.failures}/{self.max_failures}): {e}")
            if self.failures >= self.max_failures:
                conn.close("store unavailable")
            return
        self.failures = 0

        if not records or not conn.is_alive():
            return
        if conn.send(message_event(records)):
            self.watermark = watermark
            logger.debug(f"Delivered {len(records)} message(s) to {conn.conn_id}")
