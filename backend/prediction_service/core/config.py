"""
Application configuration utilities.

This module defines the ``Settings`` class used throughout the service for
environment variables and provides a helper to load the YAML file holding
business constants such as the per-order cost.
"""

from __future__ import annotations

import os
from functools import lru_cache

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # API server configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # GEMINI API key (optional; the external model is disabled without it)
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"

    # One external call per request, bounded by this timeout
    llm_timeout_seconds: float = 10.0
    # Caller-imposed timeout around a whole batch item
    pipeline_timeout_seconds: float = 30.0
    batch_max_concurrency: int = 10

    # Seed for the statistical noise source; unset means non-deterministic
    random_seed: int | None = None

    config_dir: str = "configs"
    data_dir: str = "data"


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return a cached instance of ``Settings``.

    Using a cache ensures that environment variables are only read once, so
    the external-model availability flag cannot change after startup.
    """
    return Settings()


def load_yaml(file_path: str) -> dict:
    """Load a YAML file from the given path and return its contents.

    If the file does not exist, an empty dictionary is returned.
    """
    if not os.path.exists(file_path):
        return {}
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
