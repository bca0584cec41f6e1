"""Real-time delivery: event format, sinks, hub, poller and connections."""

from .connection import ConnectionState, EventStream, StreamConnection
from .hub import BroadcastHub, BroadcastResult, HubSource, Subscription
from .poller import PollingSource, Watermark, WatermarkPoller
from .scheduler import StreamScheduler
from .sink import QueueSink, SinkClosedError, SinkError, SinkFullError
from .supervisor import StreamSupervisor, StreamUnavailableError

__all__ = [
    "BroadcastHub",
    "BroadcastResult",
    "ConnectionState",
    "EventStream",
    "HubSource",
    "PollingSource",
    "QueueSink",
    "SinkClosedError",
    "SinkError",
    "SinkFullError",
    "StreamConnection",
    "StreamScheduler",
    "StreamSupervisor",
    "StreamUnavailableError",
    "Subscription",
    "Watermark",
    "WatermarkPoller",
]
