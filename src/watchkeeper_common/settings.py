"""
Process settings sourced from .env and the environment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Optional[Path]:
    cwd = Path.cwd().resolve()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            return candidate
    return None


_ENV_PATH = _find_env_file()
if _ENV_PATH is not None:
    load_dotenv(dotenv_path=_ENV_PATH, override=False)


class Settings(BaseSettings):
    """Settings shared by every destination in the process."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_PATH) if _ENV_PATH is not None else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    org_key: str = Field(
        default="",
        validation_alias=AliasChoices("ORG_KEY", "RAZEEDASH_ORG_KEY", "WATCHKEEPER_ORG_KEY"),
    )
    log_level: str = "INFO"
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("HTTP_TIMEOUT_SECONDS", "WATCHKEEPER_HTTP_TIMEOUT"),
    )


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
