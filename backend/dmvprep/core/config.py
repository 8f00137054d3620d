from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(default="development", validation_alias="APP_ENV")

    host: str = Field(default="127.0.0.1", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")

    cors_allow_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOW_ORIGINS")

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias="REDIS_URL",
    )

    # Name of the environment variable holding the Gemini key. The key itself is
    # read on every generation call, not cached here.
    api_key_env: str = Field(default="API_KEY", validation_alias="API_KEY_ENV")

    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )
    gemini_model: str = Field(default="gemini-3-flash-preview", validation_alias="GEMINI_MODEL")
    gemini_max_output_tokens: int = Field(default=12000, validation_alias="GEMINI_MAX_OUTPUT_TOKENS")
    gemini_thinking_enabled: bool = Field(default=False, validation_alias="GEMINI_THINKING_ENABLED")
    gemini_thinking_budget: int = Field(default=8192, validation_alias="GEMINI_THINKING_BUDGET")

    gemini_timeout_connect: float = Field(default=5.0, validation_alias="GEMINI_TIMEOUT_CONNECT")
    gemini_timeout_read: float = Field(default=180.0, validation_alias="GEMINI_TIMEOUT_READ")
    gemini_timeout_write: float = Field(default=20.0, validation_alias="GEMINI_TIMEOUT_WRITE")

    history_key: str = Field(default="dmv_prep_seen_hashes", validation_alias="HISTORY_KEY")
    history_limit: int = Field(default=500, validation_alias="HISTORY_LIMIT")

    # Idle sessions are dropped from the in-memory registry after this many seconds; 0 disables eviction.
    session_ttl_seconds: float = Field(default=3600.0, validation_alias="SESSION_TTL_SECONDS")


settings = Settings()


def _is_prod() -> bool:
    return (settings.app_env or "").strip().lower() in {"prod", "production"}


if _is_prod():
    if settings.redis_url.strip() == "redis://localhost:6379/0":
        raise RuntimeError("REDIS_URL must be set in production")
    if int(settings.history_limit) <= 0:
        raise RuntimeError("HISTORY_LIMIT must be positive")
