from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_TITLE: str = "AlarmWatch API"
    APP_VERSION: str = "1.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (file-backed SQLite by default, asyncpg URLs work unchanged)
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/alarms.db"

    # Redis notification bus
    REDIS_URL: str = "redis://localhost:6379/0"
    NOTIFY_REDIS_ENABLED: bool = True
    NOTIFY_CHANNEL: str = "alarms:notifications"

    # Lifecycle scheduler
    SCHEDULER_TICK_INTERVAL: float = 1.0

    # Alarm defaults
    DEFAULT_ALARM_STATE: str = "on"

    # Webhook subscriptions
    MAX_SUBSCRIPTIONS: int = 100
    WEBHOOK_TIMEOUT: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
