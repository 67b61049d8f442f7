"""
Configuration module for the stars categorizer.

This module centralizes the loading and validation of all configuration
parameters from environment variables. It provides a single `Settings`
class that acts as a container for all configurable values, ensuring
that they are defined in one place and can be passed explicitly into the
pipeline, the GitHub client and the CLI.
"""

from __future__ import annotations

import os
from typing import Literal

import logfire
import openai

LLM_PROVIDERS = ("openai", "gemini", "ollama")
LOG_FORMATS = ("console", "json")

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

# (classify model, fast model, reasoning effort) per provider
PROVIDER_DEFAULTS = {
    "openai": ("gpt-5-mini", "gpt-5-nano", "minimal"),
    "gemini": ("gemini-2.5-flash", "gemini-2.5-flash-lite", "none"),
    "ollama": ("gemma3:12b", "gemma3:4b", ""),
}


class Settings:
    """
    A container for all configuration settings, loaded from environment variables.

    This class centralizes configuration, providing default values for optional
    settings and raising errors for missing or invalid settings.
    """

    # --- LLM Provider Configuration ---
    LLM_PROVIDER: Literal["openai", "gemini", "ollama"]
    LLM_API_KEY: str
    LLM_BASE_URL: str | None

    # --- Model Selection ---
    CLASSIFY_MODEL: str
    FAST_MODEL: str
    CLASSIFY_REASONING_EFFORT: str
    REQUEST_TIMEOUT: int

    # --- Pipeline ---
    CATEGORIZER_CONCURRENCY: int
    RETRY_MAX_ATTEMPTS: int
    RETRY_BASE_DELAY: float
    RETRY_BACKOFF_MULTIPLIER: float
    MAX_RETRY_BACKOFF_SECONDS: float

    # --- Storage ---
    CACHE_DIR: str
    RESULTS_DIR: str
    CACHE_MAX_AGE_HOURS: int

    # --- GitHub ---
    GITHUB_TOKEN: str | None
    GITHUB_API_URL: str
    SYNC_BATCH_SIZE: int
    SYNC_CONCURRENCY: int
    MAX_RETRIES: int
    MAX_RETRY_BACKOFF: float

    # --- Logging / telemetry ---
    LOG_LEVEL: str
    LOG_FORMAT: Literal["console", "json"]
    LOGFIRE_TOKEN: str | None
    LOGFIRE_SERVICE_NAME: str

    def __init__(self):
        """
        Loads settings from environment variables and performs validation.
        """
        # --- LLM Provider Configuration ---
        self.LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").strip().lower()
        if self.LLM_PROVIDER not in LLM_PROVIDERS:
            raise ValueError("LLM_PROVIDER must be 'openai', 'gemini' or 'ollama'")

        if self.LLM_PROVIDER == "openai":
            self.LLM_API_KEY = self._get_required_env("OPENAI_API_KEY")
            self.LLM_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
        elif self.LLM_PROVIDER == "gemini":
            self.LLM_API_KEY = self._get_required_env("GEMINI_API_KEY")
            self.LLM_BASE_URL = os.getenv("GEMINI_BASE_URL", GEMINI_OPENAI_BASE_URL)
        else:  # ollama
            self.LLM_API_KEY = "ollama"  # Not checked by Ollama
            self.LLM_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1/")

        # --- Model Selection ---
        default_model, default_fast, default_effort = PROVIDER_DEFAULTS[self.LLM_PROVIDER]
        self.CLASSIFY_MODEL = os.getenv("CLASSIFY_MODEL", default_model).strip()
        self.FAST_MODEL = os.getenv("FAST_MODEL", default_fast).strip()
        if not self.CLASSIFY_MODEL:
            raise ValueError("CLASSIFY_MODEL must not be empty")
        self.CLASSIFY_REASONING_EFFORT = os.getenv(
            "CLASSIFY_REASONING_EFFORT", default_effort
        ).strip()
        self.REQUEST_TIMEOUT = self._get_positive_int("REQUEST_TIMEOUT", 60)

        # --- Pipeline ---
        self.CATEGORIZER_CONCURRENCY = self._get_positive_int("CATEGORIZER_CONCURRENCY", 40)
        self.RETRY_MAX_ATTEMPTS = self._get_positive_int("RETRY_MAX_ATTEMPTS", 5)
        self.RETRY_BASE_DELAY = self._get_positive_float("RETRY_BASE_DELAY", 1.0)
        self.RETRY_BACKOFF_MULTIPLIER = self._get_positive_float(
            "RETRY_BACKOFF_MULTIPLIER", 2.0
        )
        if self.RETRY_BACKOFF_MULTIPLIER < 1:
            raise ValueError("RETRY_BACKOFF_MULTIPLIER must be >= 1")
        self.MAX_RETRY_BACKOFF_SECONDS = self._get_positive_float(
            "MAX_RETRY_BACKOFF_SECONDS", 30.0
        )

        # --- Storage ---
        self.CACHE_DIR = os.getenv("CACHE_DIR", "cache")
        self.RESULTS_DIR = os.getenv("RESULTS_DIR", "results")
        self.CACHE_MAX_AGE_HOURS = self._get_positive_int("CACHE_MAX_AGE_HOURS", 360)

        # --- GitHub ---
        # Only fetch and sync need a token, so it is checked where it is used.
        self.GITHUB_TOKEN = os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN") or None
        self.GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip(
            "/"
        )
        self.SYNC_BATCH_SIZE = self._get_positive_int("SYNC_BATCH_SIZE", 10)
        self.SYNC_CONCURRENCY = self._get_positive_int("SYNC_CONCURRENCY", 2)
        self.MAX_RETRIES = self._get_positive_int("GITHUB_MAX_RETRIES", 3)
        self.MAX_RETRY_BACKOFF = self._get_positive_float("GITHUB_MAX_RETRY_BACKOFF", 30.0)

        # --- Logging / telemetry ---
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
        if self.LOG_FORMAT not in LOG_FORMATS:
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")
        self.LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN") or None
        self.LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "categorize-stars")

    def _get_required_env(self, var_name: str) -> str:
        """
        Gets a required environment variable, raising an error if it's not set.
        """
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Required environment variable '{var_name}' is not set.")
        return value

    def _get_positive_int(self, var_name: str, default: int) -> int:
        raw = os.getenv(var_name)
        if raw is None or not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{var_name} must be an integer, got {raw!r}") from None
        if value < 1:
            raise ValueError(f"{var_name} must be a positive integer")
        return value

    def _get_positive_float(self, var_name: str, default: float) -> float:
        raw = os.getenv(var_name)
        if raw is None or not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError:
            raise ValueError(f"{var_name} must be a number, got {raw!r}") from None
        if value <= 0:
            raise ValueError(f"{var_name} must be positive")
        return value


def setup_libraries(settings: Settings) -> None:
    """
    Configures third-party libraries based on the application settings.
    """
    # Configure OpenAI SDK (Gemini and Ollama speak the same protocol)
    openai.api_key = settings.LLM_API_KEY
    openai.base_url = settings.LLM_BASE_URL
    # The pipeline's retry wrapper owns retries and backoff
    openai.max_retries = 0

    if settings.LOGFIRE_TOKEN:
        logfire.configure(
            token=settings.LOGFIRE_TOKEN,
            service_name=settings.LOGFIRE_SERVICE_NAME,
            console=False,
        )
        logfire.instrument_openai()
