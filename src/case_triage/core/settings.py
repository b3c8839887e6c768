"""Process settings powered by :mod:`pydantic_settings`."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic.functional_validators import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Centralized process-level configuration for the triage service.

    Pipeline wiring (handlers, tools, oracle, limits) lives in the YAML file
    referenced by ``pipeline_config``; this model only carries what must be
    known before that file is read.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    pipeline_config: Path = Field(
        default=_PACKAGE_ROOT / "pipeline.yaml",
        alias="PIPELINE_CONFIG",
        description="Path to the YAML file describing the pipeline wiring.",
    )
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging verbosity for the service.",
    )
    log_format: str = Field(
        default="json",
        alias="LOG_FORMAT",
        description="Either ``json`` for machine-readable lines or ``console`` for local runs.",
    )
    server_host: str = Field(
        default="0.0.0.0",
        alias="SERVER_HOST",
        description="Interface the HTTP ingress binds to.",
    )
    server_port: int | None = Field(
        default=None,
        alias="SERVER_PORT",
        ge=1,
        le=65535,
        description="Overrides the port declared in the pipeline file when set.",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"json", "console"}:
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return normalized

    @field_validator("pipeline_config", mode="before")
    @classmethod
    def _coerce_pipeline_config(cls, value: str | Path) -> Path:
        return Path(value).expanduser()


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
