"""Stream blueprint - Server-Sent Events endpoints for new messages."""

from flask import Blueprint, Response, current_app, jsonify, request

from chatrelay.config import config
from chatrelay.routes.helpers import api_error
from chatrelay.sse.supervisor import StreamUnavailableError

stream_bp = Blueprint("stream", __name__)


def _cors_headers() -> dict:
    return {
        "Access-Control-Allow-Origin": config.CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Methods": "GET, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }


def _preflight() -> Response:
    headers = _cors_headers()
    headers["Access-Control-Max-Age"] = str(config.CORS_MAX_AGE)
    return Response(status=204, headers=headers)


def _event_stream(open_connection) -> Response | tuple[Response, int]:
    try:
        conn = open_connection()
    except StreamUnavailableError:
        return api_error("Streaming is unavailable", 503)

    return Response(
        conn.stream(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
            **_cors_headers(),
        },
    )


@stream_bp.route("/api/messages/stream", methods=["GET", "OPTIONS"])
def message_stream() -> Response | tuple[Response, int]:
    """Push stream: every new message is broadcast to connected clients."""
    if request.method == "OPTIONS":
        return _preflight()
    return _event_stream(current_app.stream_supervisor.open_push)


@stream_bp.route("/api/messages/sse", methods=["GET", "OPTIONS"])
def message_poll_stream() -> Response | tuple[Response, int]:
    """Polling stream: messages newer than the connection's watermark, once a second."""
    if request.method == "OPTIONS":
        return _preflight()
    return _event_stream(current_app.stream_supervisor.open_polling)


@stream_bp.route("/api/stream/status")
def stream_status() -> Response:
    """Open connection counts and hub delivery counters."""
    return jsonify(current_app.stream_supervisor.status())
