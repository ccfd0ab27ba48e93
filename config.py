"""Configuration via pydantic-settings. Reads from .env or environment."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ===== REMOTE API =====
    api_base_url: str = "http://localhost:8080"
    agent_api_prefix: str = "/api/agent"  # feature research runs
    operator_api_prefix: str = "/api/operator"  # decision operator runs
    request_timeout: float = 30.0

    # ===== POLLING (seconds) =====
    research_poll_interval: float = 2.0
    operator_poll_interval: float = 3.0

    # ===== FEATURE RESEARCH DEFAULTS =====
    research_time_window_days: int = 180

    # ===== SYSTEM =====
    database_url: str = "sqlite+aiosqlite:///./runwatch.db"
    log_level: str = "INFO"
    port: int = 8002


settings = Settings()
