"""Messages blueprint - create, edit and list chat messages."""

from flask import Blueprint, Response, current_app, jsonify, request

from chatrelay.routes.helpers import api_error, validate_json
from chatrelay.routes.validators import MessageInput, MessageUpdateInput

messages_bp = Blueprint("messages", __name__)


@messages_bp.route("/api/messages", methods=["POST"])
def create_message() -> tuple[Response, int]:
    """Store a new message and publish it to push subscribers."""
    body, error = validate_json(MessageInput)
    if error:
        return error
    message = current_app.message_service.create(
        body.sender, body.receiver, body.content, timestamp=body.timestamp
    )
    return jsonify(message.to_wire()), 201


@messages_bp.route("/api/messages/<message_id>", methods=["PATCH"])
def update_message(message_id) -> tuple[Response, int] | Response:
    """Replace a message's content."""
    body, error = validate_json(MessageUpdateInput)
    if error:
        return error
    message = current_app.message_service.update(message_id, body.content)
    if message is None:
        return api_error("Message not found", 404)
    return jsonify(message.to_wire())


@messages_bp.route("/api/messages")
def list_messages() -> tuple[Response, int] | Response:
    """Most recently updated messages, newest first."""
    try:
        limit = int(request.args.get("limit", 20))
    except ValueError:
        return api_error("limit must be an integer")
    if not 1 <= limit <= 100:
        return api_error("limit must be between 1 and 100")
    messages = current_app.message_service.recent(limit)
    return jsonify([m.to_wire() for m in messages])
