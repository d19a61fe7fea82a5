import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db: str = "icebreaker"

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    redis_url: str | None = None
    fcm_service_account_file: str | None = None
    fcm_project_id: str | None = None

    ai_provider: str = "deepseek"
    ai_api_key: str | None = None
    ai_daily_question_limit: int = 3
    ai_match_analysis_limit: int = 10

    typing_debounce_seconds: float = 1.0

    max_match_distance_km: float = 50.0
    min_compatibility: float = 0.6
    max_matches: int = 10

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    load_dotenv()
    values = {}
    for name in Settings.model_fields:
        raw = os.getenv(name.upper())
        if raw is not None and raw != "":
            values[name] = raw
    return Settings(**values)
