"""chatrelay - real-time chat message delivery over Server-Sent Events."""

__version__ = "0.1.0"
