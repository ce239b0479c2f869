from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Embedding API credentials and ranking knobs, read from the environment."""

    # Fields map to upper-case variables, e.g. EMBEDDING_API_URL
    model_config = SettingsConfigDict(frozen=True)

    embedding_api_url: str = ""
    embedding_api_key: Optional[str] = None
    embedding_gateway_key: Optional[str] = None
    embedding_request_id: Optional[str] = None
    embedding_timeout: float = Field(default=15.0, gt=0)

    # Rate-limit backoff
    embedding_max_attempts: int = Field(default=5, ge=1)
    embedding_backoff_base: float = Field(default=2.0, ge=0)
    embedding_backoff_multiplier: float = Field(default=2.0, ge=1)
    embedding_backoff_max: float = Field(default=60.0, ge=0)

    recommend_sample_size: int = Field(default=1000, ge=1)
    recommend_category_boost: float = 0.1

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
