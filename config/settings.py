"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``YOJANA_`` prefix; GCP / infrastructure settings use
their canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the matching engine service.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``YOJANA_``; GCP / infra keys
    use their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="YOJANA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── GCP / Vertex AI ────────────────────────────────────────────────
    gcp_project_id: str = Field(default="", validation_alias="GCP_PROJECT_ID")
    gcp_region: str = Field(default="asia-south1", validation_alias="GCP_REGION")
    vertex_ai_model: str = Field(default="gemini-2.0-flash", validation_alias="VERTEX_AI_MODEL")

    # ── Reasoning collaborator ─────────────────────────────────────────
    reasoning_timeout_seconds: float = Field(default=25.0, gt=0)
    reasoning_max_attempts: int = Field(default=3, ge=1, le=3)
    reasoning_backoff_seconds: float = Field(default=1.0, ge=0)
    fallback_relevance: Literal["uniform", "criteria"] = "uniform"

    # ── Persistence ────────────────────────────────────────────────────
    # Empty string selects the in-process store.
    redis_url: str = Field(default="", validation_alias="REDIS_URL")
    store_namespace: str = "yojana:"

    # ── Conversations ──────────────────────────────────────────────────
    context_ttl_hours: int = Field(default=24, ge=1)
    context_max_messages: int = Field(default=50, ge=1)

    # ── Scheme data ────────────────────────────────────────────────────
    scheme_data_path: Path | None = None

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def reasoning_enabled(self) -> bool:
        return bool(self.gcp_project_id)


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()
