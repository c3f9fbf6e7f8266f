from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 8080
    LOG_JSON: bool = True
    # Durable medium selection: "memory", "file" or "redis"
    STORAGE_BACKEND: Literal["memory", "file", "redis"] = "memory"
    STORAGE_PREFIX: str = "microfrontend:"
    # Roughly what a browser grants local storage per origin; 0 disables the quota
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024
    STORAGE_FILE: str = "modulebridge-storage.json"
    REDIS_URL: AnyUrl | None = None

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
