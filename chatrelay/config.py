"""
Zero-Configuration management for chatrelay
All settings have sensible defaults - no .env required
"""
import os
from pathlib import Path


class Config:
    """Application configuration with zero-config defaults"""

    # Application paths (auto-created)
    BASE_DIR: Path = Path(__file__).parent.parent
    DATA_DIR: Path = BASE_DIR / 'data'
    LOGS_DIR: Path = BASE_DIR / 'logs'
    DB_PATH: Path = DATA_DIR / 'chatrelay.duckdb'

    # Web server
    HOST: str = '127.0.0.1'
    PORT: int = 3000

    # Streaming defaults (seconds unless noted)
    KEEPALIVE_INTERVAL: float = 30.0
    MAX_FAILED_PINGS: int = 3
    POLL_INTERVAL: float = 1.0
    POLL_PAGE_SIZE: int = 10
    MAX_POLL_FAILURES: int = 5
    SINK_QUEUE_SIZE: int = 256  # chunks buffered per connection
    SINK_READ_TIMEOUT: float = 1.0

    # Producer hook: broadcast to the hub when a message is created
    BROADCAST_ON_CREATE: bool = True

    # CORS for the stream endpoints
    CORS_ALLOW_ORIGIN: str = '*'
    CORS_MAX_AGE: int = 86400  # 24 hours

    # Scheduler
    SCHEDULER_MISFIRE_GRACE_TIME: int = 5

    # Logging defaults
    LOG_LEVEL: str = 'INFO'
    LOG_FILE: Path = LOGS_DIR / 'chatrelay.log'

    def __init__(self):
        """Initialize configuration"""
        # Create necessary directories
        self.DATA_DIR.mkdir(exist_ok=True, parents=True)
        self.LOGS_DIR.mkdir(exist_ok=True, parents=True)

        # Optional: Override with environment variables if present
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load any environment variable overrides (optional)"""
        if os.getenv('CHATRELAY_HOST'):
            self.HOST = os.getenv('CHATRELAY_HOST')
        if os.getenv('CHATRELAY_PORT'):
            self.PORT = int(os.getenv('CHATRELAY_PORT'))
        if os.getenv('CHATRELAY_DB_PATH'):
            self.DB_PATH = Path(os.getenv('CHATRELAY_DB_PATH'))
        if os.getenv('CHATRELAY_LOG_LEVEL'):
            self.LOG_LEVEL = os.getenv('CHATRELAY_LOG_LEVEL')
        if os.getenv('CHATRELAY_KEEPALIVE_INTERVAL'):
            self.KEEPALIVE_INTERVAL = float(os.getenv('CHATRELAY_KEEPALIVE_INTERVAL'))
        if os.getenv('CHATRELAY_MAX_FAILED_PINGS'):
            self.MAX_FAILED_PINGS = int(os.getenv('CHATRELAY_MAX_FAILED_PINGS'))
        if os.getenv('CHATRELAY_POLL_INTERVAL'):
            self.POLL_INTERVAL = float(os.getenv('CHATRELAY_POLL_INTERVAL'))
        if os.getenv('CHATRELAY_POLL_PAGE_SIZE'):
            self.POLL_PAGE_SIZE = int(os.getenv('CHATRELAY_POLL_PAGE_SIZE'))
        if os.getenv('CHATRELAY_MAX_POLL_FAILURES'):
            self.MAX_POLL_FAILURES = int(os.getenv('CHATRELAY_MAX_POLL_FAILURES'))
        if os.getenv('CHATRELAY_SINK_QUEUE_SIZE'):
            self.SINK_QUEUE_SIZE = int(os.getenv('CHATRELAY_SINK_QUEUE_SIZE'))
        if os.getenv('CHATRELAY_BROADCAST_ON_CREATE'):
            self.BROADCAST_ON_CREATE = os.getenv('CHATRELAY_BROADCAST_ON_CREATE').lower() in ('1', 'true', 'yes')


# Create singleton instance
config = Config()
