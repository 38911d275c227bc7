"""Sentiflow configuration via environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Workflow ---
    WORKFLOW_NAME: str = "SentimentAnalisys"
    TARGET_LANGUAGE: str = "pt"
    EXECUTION_ARN_PREFIX: str = "arn:sentiflow:states:local:execution"

    # --- Capabilities ---
    CAPABILITY_PROVIDER: Literal["stub", "http"] = "stub"
    LANGUAGE_ENDPOINT: str = "http://localhost:8081/detect-dominant-language"
    TRANSLATE_ENDPOINT: str = "http://localhost:8082/translate-text"
    SENTIMENT_ENDPOINT: str = "http://localhost:8083/detect-sentiment"
    CAPABILITY_API_KEY: str = ""

    # --- Execution limits ---
    TASK_TIMEOUT_SECONDS: float = 30.0
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INTERVAL_SECONDS: float = 0.5
    RETRY_BACKOFF_RATE: float = 2.0
    RETRY_MAX_INTERVAL_SECONDS: float = 5.0
    MAX_CONCURRENT_EXECUTIONS: int = 1000

    # --- Observability ---
    LOG_LEVEL: str = "INFO"

    # --- CORS ---
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("TARGET_LANGUAGE", mode="before")
    @classmethod
    def _normalize_language(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("RETRY_MAX_ATTEMPTS")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be >= 1")
        return v


settings = Settings()
