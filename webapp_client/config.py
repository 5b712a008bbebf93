from pydantic_settings import BaseSettings, SettingsConfigDict

class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WEBAPP_", env_file=".env", env_file_encoding="utf-8", extra='ignore')

    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT_SECONDS: float = 12.0
    NETWORK_RETRY: int = 2  # extra attempts on transport errors only

    CACHE_PATH: str = "/tmp/habitsync/webapp_cache.json"
    CACHE_MAX_AGE_DAYS: int = 7
    SAVE_DEBOUNCE_SECONDS: float = 1.0

    FIVE_MIN_RULE: bool = True
    LOG_LEVEL: str = "INFO"

client_settings = ClientSettings()
