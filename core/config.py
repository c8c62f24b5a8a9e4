"""
Application Settings for the Roast API.

All tunables live here and are read from environment variables (or a local
`.env` file) through `pydantic-settings`. Modules call `get_settings()` rather
than reading `os.environ` directly so tests can override values in one place.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Runtime
    environment: str = "development"
    log_level: str = "INFO"
    database_url: str = "sqlite+aiosqlite:///./roast_api.db"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Content fetcher
    proxy_base_url: str = "https://r.jina.ai/"
    required_domain: str = "xiaohongshu.com"
    fetch_timeout: float = 30.0

    # Roast generator
    deepseek_api_key: Optional[str] = None
    deepseek_api_url: str = "https://api.deepseek.com/v1/chat/completions"
    deepseek_model: str = "deepseek-reasoner"
    temperature: float = 0.7
    max_tokens: int = 4000
    max_content_chars: int = 18000
    generation_timeout: float = 120.0
    generation_max_attempts: int = 3
    generation_retry_delay: float = 1.0

    # Persistence and feed
    persist_results: bool = True
    feed_page_size: int = 10
    feed_overfetch_factor: int = 3
    feed_max_rounds: int = 5
    min_roast_length: int = 50
    history_limit: int = 10


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance"""
    return Settings()
