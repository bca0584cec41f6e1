"""Tests for the watermark poller and the per-connection polling source."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import duckdb
from helpers import FakeScheduler, parse_event, pending

from chatrelay.sse.connection import ConnectionState, StreamConnection
from chatrelay.sse.poller import EPOCH, PollingSource, Watermark, WatermarkPoller
from chatrelay.sse.sink import QueueSink

T0 = datetime(2026, 10, 19, 9, 0, 0)


def _at(seconds):
    return T0 + timedelta(seconds=seconds)


def _add(db, content, seconds):
    return db.messages_repo.create_message("alice", "bob", content, now=_at(seconds))


class TestWatermark:
    def test_starts_at_epoch(self):
        wm = Watermark()
        assert wm.updated_at == EPOCH
        assert wm.seen_ids == frozenset()

    def test_advance_takes_newest_timestamp(self, tmp_db):
        a = _add(tmp_db, "a", 1)
        b = _add(tmp_db, "b", 2)
        wm = Watermark().advance([b, a])
        assert wm.updated_at == _at(2)
        assert wm.seen_ids == {b.id}

    def test_advance_at_same_timestamp_merges_ids(self, tmp_db):
        a = _add(tmp_db, "a", 1)
        b = _add(tmp_db, "b", 1)
        wm = Watermark().advance([a]).advance([b])
        assert wm.updated_at == _at(1)
        assert wm.seen_ids == {a.id, b.id}

    def test_covers(self, tmp_db):
        old = _add(tmp_db, "old", 1)
        same = _add(tmp_db, "same", 2)
        newer = _add(tmp_db, "newer", 3)
        wm = Watermark(updated_at=_at(2), seen_ids=frozenset())
        assert wm.covers(old)
        assert not wm.covers(same)
        assert not wm.covers(newer)
        assert Watermark(updated_at=_at(2), seen_ids=frozenset({same.id})).covers(same)


class TestWatermarkPoller:
    def test_first_poll_returns_backlog_then_nothing(self, tmp_db):
        m1 = _add(tmp_db, "first", 1)
        m2 = _add(tmp_db, "second", 2)
        poller = WatermarkPoller(tmp_db, page_size=10)

        wm, records = poller.poll(Watermark())
        assert [r.id for r in records] == [m2.id, m1.id]
        assert wm.updated_at == _at(2)

        wm2, records2 = poller.poll(wm)
        assert records2 == []
        assert wm2 == wm

    def test_page_size_caps_batch_to_newest(self, tmp_db):
        for i in range(12):
            _add(tmp_db, f"m{i}", i)
        poller = WatermarkPoller(tmp_db, page_size=10)
        wm, records = poller.poll(Watermark())
        assert len(records) == 10
        assert records[0].content == "m11"
        assert wm.updated_at == _at(11)

    def test_watermark_is_monotonic_and_never_re_emits(self, tmp_db):
        poller = WatermarkPoller(tmp_db, page_size=3)
        wm = Watermark()
        delivered = []
        for step in range(6):
            _add(tmp_db, f"s{step}", step)
            if step % 2:
                _add(tmp_db, f"s{step}-dup", step)
            new_wm, records = poller.poll(wm)
            assert new_wm.updated_at >= wm.updated_at
            for r in records:
                assert not wm.covers(r)
            delivered.extend(r.id for r in records)
            wm = new_wm
        assert len(delivered) == len(set(delivered)) == 9

    def test_equal_timestamps_across_poll_boundary_both_delivered_once(self, tmp_db):
        poller = WatermarkPoller(tmp_db, page_size=10)
        first = _add(tmp_db, "first", 5)
        wm, records = poller.poll(Watermark())
        assert [r.id for r in records] == [first.id]

        # Arrives after the poll but carries the same updatedAt
        second = _add(tmp_db, "second", 5)
        wm, records = poller.poll(wm)
        assert [r.id for r in records] == [second.id]

        wm, records = poller.poll(wm)
        assert records == []
        assert wm.updated_at == _at(5)

    def test_more_equal_timestamps_than_page_size(self, tmp_db):
        ids = {_add(tmp_db, f"same{i}", 7).id for i in range(3)}
        poller = WatermarkPoller(tmp_db, page_size=2)

        wm, batch1 = poller.poll(Watermark())
        wm, batch2 = poller.poll(wm)
        wm, batch3 = poller.poll(wm)

        assert len(batch1) == 2
        assert len(batch2) == 1
        assert batch3 == []
        assert {r.id for r in batch1 + batch2} == ids

    def test_edited_message_is_delivered_again(self, tmp_db):
        poller = WatermarkPoller(tmp_db)
        msg = _add(tmp_db, "draft", 1)
        wm, _ = poller.poll(Watermark())
        tmp_db.messages_repo.update_content(msg.id, "final", now=_at(2))
        wm, records = poller.poll(wm)
        assert [(r.id, r.content) for r in records] == [(msg.id, "final")]

    def test_query_shape(self):
        store = MagicMock()
        store.find.return_value = []
        poller = WatermarkPoller(store, page_size=10)
        wm = Watermark(updated_at=_at(1), seen_ids=frozenset({"a", "b"}))
        poller.poll(wm)
        store.find.assert_called_once_with(
            "messages",
            where={"updatedAt": {"greater_than_equal": _at(1)}},
            sort="-updatedAt",
            limit=12,
        )


def _open_polling(store, scheduler, max_failures=3, sink=None):
    source = PollingSource(WatermarkPoller(store), interval=1.0, max_failures=max_failures)
    conn = StreamConnection(source, scheduler, sink=sink or QueueSink(maxsize=16, read_timeout=0.01))
    conn.open()
    return conn, source


class TestPollingSource:
    def test_backlog_delivered_on_open(self, tmp_db):
        _add(tmp_db, "hello", 1)
        conn, _ = _open_polling(tmp_db, FakeScheduler())
        chunks = pending(conn.sink)
        assert len(chunks) == 1
        event, data = parse_event(chunks[0])
        assert event == "message"
        assert data[0]["content"] == "hello"

    def test_poll_job_scheduled_at_interval(self, tmp_db):
        scheduler = FakeScheduler()
        conn, _ = _open_polling(tmp_db, scheduler)
        assert scheduler.intervals[f"poll:{conn.conn_id}"] == 1.0

    def test_tick_delivers_new_messages_only(self, tmp_db):
        scheduler = FakeScheduler()
        _add(tmp_db, "old", 1)
        conn, source = _open_polling(tmp_db, scheduler)
        pending(conn.sink)

        _add(tmp_db, "new", 2)
        scheduler.fire("poll:")
        chunks = pending(conn.sink)
        assert [m["content"] for m in parse_event(chunks[0])[1]] == ["new"]
        assert source.watermark.updated_at == _at(2)

        scheduler.fire("poll:")
        assert pending(conn.sink) == []

    def test_empty_store_sends_nothing(self, tmp_db):
        conn, source = _open_polling(tmp_db, FakeScheduler())
        assert pending(conn.sink) == []
        assert source.watermark == Watermark()

    def test_store_failures_close_connection_after_threshold(self):
        store = MagicMock()
        store.find.side_effect = duckdb.Error("database is locked")
        scheduler = FakeScheduler()
        conn, source = _open_polling(store, scheduler, max_failures=3)
        assert source.failures == 1
        scheduler.fire("poll:")
        assert conn.state is ConnectionState.ACTIVE
        scheduler.fire("poll:")
        assert conn.state is ConnectionState.CLOSED
        assert conn.close_reason == "store unavailable"
        assert scheduler.jobs == {}

    def test_success_resets_failure_count(self):
        store = MagicMock()
        store.find.side_effect = [duckdb.Error("locked"), [], duckdb.Error("locked")]
        scheduler = FakeScheduler()
        conn, source = _open_polling(store, scheduler, max_failures=2)
        scheduler.fire("poll:")
        assert source.failures == 0
        scheduler.fire("poll:")
        assert source.failures == 1
        assert conn.state is ConnectionState.ACTIVE

    def test_no_query_after_close(self):
        store = MagicMock()
        store.find.return_value = []
        scheduler = FakeScheduler()
        conn, source = _open_polling(store, scheduler)
        conn.close("client disconnected")
        store.find.reset_mock()
        source.tick()
        store.find.assert_not_called()

    def test_watermark_held_when_batch_dropped(self, tmp_db):
        _add(tmp_db, "a", 1)
        sink = QueueSink(maxsize=1, read_timeout=0.01)
        sink.write(b"filler")
        conn, source = _open_polling(tmp_db, FakeScheduler(), sink=sink)
        assert source.watermark == Watermark()

        pending(sink)
        source.tick()
        assert source.watermark.updated_at == _at(1)
        assert len(pending(sink)) == 1
