"""
chatrelay - Main Application Entry Point
"""

import click

from chatrelay.config import config
from chatrelay.database.manager import DatabaseManager
from chatrelay.utils.logger import setup_logging

# Setup logging
logger = setup_logging()


@click.group()
def cli():
    """chatrelay - Real-time chat message delivery over Server-Sent Events"""
    pass


@cli.command('init-db')
def init_db():
    """Create the messages database"""
    db = DatabaseManager()
    click.echo(f"Database ready at {db.db_path} ({db.messages_repo.count()} messages)")
    db.close()


@cli.command()
@click.option('--host', default=None, help=f'Bind address (default: {config.HOST})')
@click.option('--port', type=int, default=None, help=f'Port (default: {config.PORT})')
def serve(host, port):
    """Run the web server with both stream endpoints"""
    from app import create_app

    app = create_app()
    host = host or config.HOST
    port = port or config.PORT

    click.echo("\n" + "=" * 50)
    click.echo("chatrelay")
    click.echo("=" * 50)
    click.echo(f"  Push stream:    http://{host}:{port}/api/messages/stream")
    click.echo(f"  Polling stream: http://{host}:{port}/api/messages/sse")
    click.echo(f"  Messages API:   http://{host}:{port}/api/messages\n")

    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        app.stream_supervisor.shutdown()


@cli.command()
@click.argument('sender')
@click.argument('receiver')
@click.argument('content')
def send(sender, receiver, content):
    """Store a message (polling clients receive it on their next tick)"""
    db = DatabaseManager()
    message = db.messages_repo.create_message(sender, receiver, content)
    click.echo(f"Message {message.id} stored at {message.updated_at.isoformat()}")
    db.close()


@cli.command()
@click.option('--limit', type=int, default=20, help='Number of messages to show')
def recent(limit):
    """Show the most recently updated messages"""
    db = DatabaseManager()
    messages = db.messages_repo.get_recent(limit)
    if not messages:
        click.echo("No messages yet")
    for m in messages:
        click.echo(f"{m.updated_at:%Y-%m-%d %H:%M:%S}  {m.sender} -> {m.receiver}: {m.content}")
    db.close()


if __name__ == '__main__':
    cli()
