from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod")
    )

    # Either key enables AI scoring; OpenRouter is preferred when both are set.
    # With neither, scoring degrades to the deterministic fallback scorer.
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4.1-mini"

    # Ranking pipeline
    rank_batch_size: int = 5
    rank_batch_delay_seconds: float = 1.0
    scoring_timeout_seconds: float = 30.0
    scoring_resume_max_chars: int = 1500
    scoring_prompt_max_chars: int = 300
    candidate_info_max_chars: int = 1000

    # Upload limits
    max_upload_files: int = 10
    max_upload_bytes: int = 10 * 1024 * 1024

    # Identity (disabled for local dev: a single local user is used)
    auth_enabled: bool = False
    auth_jwt_secret: Optional[str] = None
    auth_jwt_algorithm: str = "HS256"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
