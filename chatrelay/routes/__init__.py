"""Flask blueprints."""

from .messages import messages_bp
from .stream import stream_bp

__all__ = ["messages_bp", "stream_bp"]
