# /taskflow/config/settings.py

from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Deployment
    environment: str = "production"
    log_level: str = "INFO"
    workers: int = 2

    # App Metadata & Security
    api_version: str = "v1"
    api_key: str | None = None
    cors_allowed_origins: str = ""

    # Process executor
    process_max_iterations: int = 10
    process_enforce_timeouts: bool = True
    session_sweep_interval_seconds: int = 60

    # Tool layer (n8n-style webhook)
    tool_webhook_url: str | None = None
    tool_webhook_secret: str | None = None
    tool_timeout_seconds: float = 30.0
    tool_failure_threshold: int = 5
    tool_recovery_timeout: int = 60

    # LLM fallback
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    processes_only: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ---------------- Validators ---------------- #

    @field_validator("process_max_iterations")
    @classmethod
    def iterations_must_be_positive(cls, v):
        if v < 1:
            raise ValueError("PROCESS_MAX_ITERATIONS must be at least 1")
        return v

    @field_validator("environment", "log_level")
    @classmethod
    def normalize_case(cls, v: str, info):
        return v.upper() if info.field_name == "log_level" else v.lower()

    def get_cors_origins(self) -> List[str]:
        """Splits the comma-separated CORS origins into a clean list."""
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


settings = Settings()
