from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./habit_coach.db"

    AI_BACKEND: str = "openai"

    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"

    OPENROUTER_API_KEY: str = ""
    OPENROUTER_MODEL: str = "meta-llama/llama-3.1-8b-instruct:free"

    AI_TIMEOUT_SECONDS: float = 30.0

    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    CACHE_TTL_DAYS: int = 30

    DAILY_NUDGE_HOUR: int = 9
    WEEKLY_INSIGHT_HOUR: int = 20

    JOB_MAX_ATTEMPTS: int = 3
    JOB_RETRY_DELAY_SECONDS: float = 8.0

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
