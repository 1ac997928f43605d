import logging.config
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/taskmate"
    redis_url: str = "redis://redis:6379/0"

    # tokens are minted by the identity provider, we only verify them
    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "taskmate-identity"
    jwt_audience: str = "taskmate"
    jwt_expires_minutes: int = 60

    # realtime fan-out
    realtime_backend: Literal["memory", "redis"] = "memory"
    realtime_channel_prefix: str = "taskmate:"
    subscriber_queue_size: int = 256

    log_level: str = "INFO"
    log_format: str = "text"

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_requests_per_min: int = 20
    rate_limit_messages_per_min: int = 120

settings = Settings()

def setup_logging() -> None:
    """Configure logging from settings. Call once at startup."""
    if settings.log_format == "json":
        formatter_config = {
            "class": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        }
    else:
        formatter_config = {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": formatter_config,
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {
            "level": settings.log_level,
            "handlers": ["console"],
        },
    })
