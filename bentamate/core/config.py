from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    OFFLINE_DB_URL: str = "sqlite+aiosqlite:///./bentamate_offline.db"
    ALLOW_MEMORY_FALLBACK: bool = False
    OFFLINE_ID_PREFIX: str = "offline_"

    BACKEND_URL: str = "http://localhost:54321"
    BACKEND_API_KEY: str = ""
    BACKEND_ACCESS_TOKEN: Optional[str] = None
    BACKEND_TIMEOUT: float = 10.0

    REQUEST_CACHE_ENABLED: bool = True
    APP_SHELL_URL: str = "http://localhost:8000/"

    ASSUME_ONLINE: bool = True
    CONNECTIVITY_PROBE_INTERVAL: float = 15.0

    LOG_LEVEL: str = "INFO"


settings = Settings()
