from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./fleet_ledger.db"
    redis_url: str = "redis://localhost:6379/0"

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path(".local_storage")

    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_bucket: str = "fleet-ledger"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None

    init_admin_email: str | None = None
    init_admin_password: str | None = None

    access_token_exp_minutes: int = 60 * 24
    cors_allow_origins: list[str] = ["*"]

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"

    receipt_ai_enabled: bool = True
    receipt_ai_timeout_seconds: float = 30.0
    receipt_ai_max_tokens: int = 1000
    receipt_max_upload_bytes: int = 10 * 1024 * 1024

    categorization_min_confidence: float = 0.6


settings = Settings()
