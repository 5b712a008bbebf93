from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    TELEGRAM_BOT_TOKEN: str

    DATABASE_URL: str = Field(..., description="SQLAlchemy async URL, e.g., postgresql+asyncpg://...")

    # Telegram initData freshness window (seconds)
    INIT_DATA_MAX_AGE_SECONDS: int = 6 * 60 * 60
    # Lets the literal "debug-mode" credential act as Telegram user 1
    ALLOW_DEBUG_AUTH: bool = False

    DEFAULT_TIMEZONE: str = "Europe/Prague"

    # Rewards
    XP_PER_CHECKIN: int = 10
    XP_PER_LEVEL: int = 100

    # Stats
    HEATMAP_DEFAULT_DAYS: int = 365
    HEATMAP_MIN_DAYS: int = 7
    HEATMAP_MAX_DAYS: int = 365

    # Entitlements
    TRIAL_DAYS: int = 7
    PREMIUM_USER_IDS: str = ""  # Comma-separated Telegram user IDs
    FREE_HABIT_LIMIT: int = 3

    @property
    def premium_ids(self) -> list[int]:
        if not self.PREMIUM_USER_IDS:
            return []
        return [int(x.strip()) for x in self.PREMIUM_USER_IDS.split(",") if x.strip()]

settings = Settings()
