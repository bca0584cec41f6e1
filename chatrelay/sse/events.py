"""Server-Sent Events wire format."""

import json
from typing import Any, Iterable, Optional

PING = b"event: ping\ndata: keep-alive\n\n"
CONNECTED = b'data: {"type":"connected"}\n\n'


def format_event(data: str, event: Optional[str] = None) -> bytes:
    """Encode one event. Multi-line data becomes several ``data:`` lines."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return ("\n".join(lines) + "\n\n").encode("utf-8")


def _wire(message: Any) -> Any:
    to_wire = getattr(message, "to_wire", None)
    return to_wire() if to_wire else message


def message_event(messages: Iterable[Any]) -> bytes:
    """``event: message`` carrying a JSON array of messages."""
    payload = json.dumps([_wire(m) for m in messages], separators=(",", ":"), default=str)
    return format_event(payload, event="message")


def ping_event() -> bytes:
    return PING


def connected_event() -> bytes:
    return CONNECTED
