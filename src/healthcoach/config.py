from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    insight_model: str = "claude-sonnet-4-5"
    database_url: str = "sqlite:///./healthcoach.db"

    # Analytics constants; defaults are the reference values
    recompute_cooldown_hours: int = 24
    max_daily_insights: int = 3
    min_correlation: float = 0.4
    min_sample_size: int = 7
    notable_change_yesterday_pct: float = 15.0
    notable_change_baseline_pct: float = 20.0

    store_timeout_seconds: float = 5.0
    recompute_hour: int = 4  # nightly baseline/pattern refresh, UTC

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
