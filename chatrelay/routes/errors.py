"""Flask error handlers - JSON responses for every path."""

import logging

from flask import jsonify

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register 404, 405, and 500 error handlers on the Flask app."""

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found", "status": 404}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "status": 405}), 405

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error", "status": 500}), 500
