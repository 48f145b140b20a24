from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 8080
    LOG_JSON: bool = True
    # Store adapter selection: "memory" or "redis"
    STORE_ADAPTER: Literal["memory", "redis"] = "memory"
    REDIS_URL: AnyUrl | None = None
    REDIS_KEY_PREFIX: str = "machine-events"
    # WATCH/EXEC attempts before a batch commit is given up
    STORE_MAX_RETRIES: int = 5
    MAX_BATCH_BYTES: int = 4 * 1024 * 1024

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
