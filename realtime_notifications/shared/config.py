"""
MODULE OVERVIEW:
Application-wide configuration for the notification client, using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing the delivery engine depends on lives here: reconnect backoff,
heartbeat cadence, probe timeout, feed capacity. Components never hardcode
"30 seconds"; they read it from a `Settings` instance so tests can build
their own with tighter values.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    SERVER_BASE_URL: str = "http://127.0.0.1:5000"
    WS_PATH: str = "/ws"
    LOG_LEVEL: str = "INFO"

    # Reconnect backoff
    RECONNECT_BASE_DELAY_S: float = 2.0
    RECONNECT_GROWTH: float = 1.5
    RECONNECT_MAX_DELAY_S: float = 30.0
    RECONNECT_MAX_ATTEMPTS: int = 30
    RECONNECT_JITTER_MIN: float = 0.8
    RECONNECT_JITTER_MAX: float = 1.2

    # Liveness
    WS_HEARTBEAT_INTERVAL_S: float = 30.0
    WS_PONG_TIMEOUT_S: float = 5.0

    # Feed
    FEED_MAX_ITEMS: int = 0

    # Audio + environment
    SOUNDS_PATH: str = "/sounds"
    HEALTH_PATH: str = "/api/health"
    REACHABILITY_INTERVAL_S: float = 15.0

    class Config:
        env_file = ".env"
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
