"""
chatrelay Web Interface - Flask Application
"""
from flask import Flask

from chatrelay.config import config
from chatrelay.database.manager import DatabaseManager
from chatrelay.messages.service import MessageService
from chatrelay.routes import messages_bp, stream_bp
from chatrelay.routes.errors import register_error_handlers
from chatrelay.sse.hub import BroadcastHub
from chatrelay.sse.poller import WatermarkPoller
from chatrelay.sse.scheduler import StreamScheduler
from chatrelay.sse.supervisor import StreamSupervisor


def create_app(db_manager=None, scheduler=None, broadcast_on_create=None):
    """Build the Flask app and its stream supervisor.

    The caller owns shutdown: ``app.stream_supervisor.shutdown()`` closes
    open streams and stops the scheduler.

    ``db_manager`` and ``scheduler`` can be injected (tests pass a temp
    database and a manually driven scheduler).
    """
    app = Flask(__name__)

    # Initialize managers
    db_manager = db_manager or DatabaseManager()
    hub = BroadcastHub()
    poller = WatermarkPoller(db_manager, page_size=config.POLL_PAGE_SIZE)
    supervisor = StreamSupervisor(hub, poller, scheduler or StreamScheduler())

    if broadcast_on_create is None:
        broadcast_on_create = config.BROADCAST_ON_CREATE

    # Blueprints reach these through current_app
    app.db_manager = db_manager
    app.hub = hub
    app.stream_supervisor = supervisor
    app.message_service = MessageService(db_manager, hub if broadcast_on_create else None)

    app.register_blueprint(stream_bp)
    app.register_blueprint(messages_bp)
    register_error_handlers(app)

    supervisor.start()
    return app


if __name__ == '__main__':
    from chatrelay.utils.logger import setup_logging

    setup_logging()
    app = create_app()
    try:
        app.run(host=config.HOST, port=config.PORT, threaded=True)
    finally:
        app.stream_supervisor.shutdown()
