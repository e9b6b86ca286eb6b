from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ignore unknown env keys to prevent ValidationError on extras
    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True, extra="ignore")
    app_name: str = Field(default="Card Tracker API")
    port: int = Field(default=3000, alias="PORT")
    frontend_url: str = Field(default="http://localhost:8000", alias="FRONTEND_URL")
    database_url: str = Field(default="sqlite:///./tracker.db", alias="TRACKER_DATABASE_URL")

    # JWT sessions
    jwt_secret: str = Field(default="your-secret-key-change-this", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_days: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_DAYS")

    # Anthropic recognition proxy
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_max_tokens: int = Field(default=2000, alias="ANTHROPIC_MAX_TOKENS")
    anthropic_timeout: float = Field(default=120.0, alias="ANTHROPIC_TIMEOUT")

    # Request limits
    rate_limit_max_requests: int = Field(default=10, alias="RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")
    trust_proxy_headers: bool = Field(default=False, alias="TRUST_PROXY_HEADERS")
    max_body_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_BODY_BYTES")
    max_recognition_bytes: int = Field(default=20_000_000, alias="MAX_RECOGNITION_BYTES")

    price_history_limit: int = Field(default=500, alias="PRICE_HISTORY_LIMIT")


@lru_cache
def get_settings() -> Settings:
    return Settings()
