"""Test doubles and wire helpers shared by the test modules."""

import json
import queue

from chatrelay.sse.sink import SinkClosedError


class FakeScheduler:
    """Stands in for StreamScheduler: collects interval jobs, tests fire them by hand."""

    def __init__(self):
        self.jobs = {}
        self.intervals = {}
        self.cancelled = []
        self.running = False
        self.stop_calls = 0

    def start(self):
        self.running = True

    def stop(self):
        self.stop_calls += 1
        self.running = False

    def every(self, seconds, func, job_id, name=None):
        self.jobs[job_id] = func
        self.intervals[job_id] = seconds
        return job_id

    def cancel(self, job_id):
        self.cancelled.append(job_id)
        return self.jobs.pop(job_id, None) is not None

    def fire(self, prefix=""):
        """Run every job whose id starts with ``prefix`` once."""
        for job_id, func in list(self.jobs.items()):
            if job_id.startswith(prefix):
                func()


class RecordingSink:
    """In-memory sink that records writes; can be told to fail or report no room."""

    def __init__(self, fail=False, capacity=100):
        self.writes = []
        self.attempts = 0
        self.fail = fail
        self.room = capacity
        self.closed = False
        self.close_calls = 0

    def write(self, chunk):
        self.attempts += 1
        if self.closed:
            raise SinkClosedError("closed")
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.writes.append(chunk)

    def close(self):
        self.close_calls += 1
        self.closed = True

    def is_closed(self):
        return self.closed

    def capacity(self):
        return 0 if self.closed else self.room


def parse_event(chunk):
    """Split one wire event into (event name or None, decoded data)."""
    assert chunk.endswith(b"\n\n")
    event, data = None, []
    for line in chunk.decode("utf-8").strip("\n").split("\n"):
        field, _, value = line.partition(": ")
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    text = "\n".join(data)
    try:
        return event, json.loads(text)
    except ValueError:
        return event, text


def pending(sink):
    """Chunks currently buffered in a QueueSink, in write order."""
    chunks = []
    while True:
        try:
            item = sink._queue.get_nowait()
        except queue.Empty:
            return chunks
        if isinstance(item, bytes):
            chunks.append(item)


