from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from rental_chat.domain.value_objects.enums import LiveTransport


class Settings(BaseSettings):
    CHAT_API_URL: str = "http://localhost:8000"
    CHAT_WS_URL: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 10.0

    LIVE_TRANSPORTS: list[LiveTransport] = [LiveTransport.WS]
    POLL_INTERVAL_SECONDS: float = 5.0
    RECONCILE_TOLERANCE_SECONDS: float = 5.0

    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "rental"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_FALLBACK_ENABLED: bool = True

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CHANNEL_PREFIX: str = "chat.listing"

    STORAGE_URL: str | None = None
    STORAGE_BUCKET: str = "chat-images"
    STORAGE_API_KEY: str = ""

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: list[str] = ["*"]
    WS_HEARTBEAT_SECONDS: int = 30
    FANOUT_MODE: Literal["local", "redis"] = "local"

    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


def get_settings() -> Settings:
    return Settings()


settings = get_settings()
