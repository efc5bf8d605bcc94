"""
Configuration module for loading and validating environment variables.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


SUPPORTED_BACKENDS = ("openrouter", "echo")
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        # Load .env file from project root
        env_path = Path(__file__).parent.parent / ".env"
        load_dotenv(dotenv_path=env_path)

        self._problems: List[str] = []

        # Backend selection
        self.backend = os.getenv("NEVRA_BACKEND", "openrouter").strip().lower()

        # OpenRouter settings
        self.openrouter_api_key = os.getenv("OPENROUTER_API_KEY")
        self.openrouter_base_url = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
        self.openrouter_site_url = os.getenv("OPENROUTER_SITE_URL", "http://localhost:8501")
        self.openrouter_site_name = os.getenv("OPENROUTER_SITE_NAME", "NEVRA")

        # Generation settings
        self.default_provider = os.getenv("NEVRA_DEFAULT_PROVIDER", "deepseek").strip()
        self.builder_max_tokens = self._int_env("NEVRA_BUILDER_MAX_TOKENS", 8192)
        self.tutor_max_tokens = self._int_env("NEVRA_TUTOR_MAX_TOKENS", 4096)
        self.history_cap = self._int_env("NEVRA_HISTORY_CAP", 20)
        self.preview_ttl_minutes = self._int_env("NEVRA_PREVIEW_TTL_MINUTES", 15)

        self.log_level = os.getenv("NEVRA_LOG_LEVEL", "INFO").strip().upper()

        # Validate required settings
        self._validate()

    def _int_env(self, name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError:
            self._problems.append(f"{name} must be an integer (got {raw!r})")
            return default
        if value <= 0:
            self._problems.append(f"{name} must be positive (got {value})")
            return default
        return value

    def _validate(self):
        """Validate that all required environment variables are set and well-formed."""
        # Imported here to avoid a cycle: providers reads nothing from config at import time
        from nevra.providers import PROVIDER_IDS

        missing = []
        problems = list(self._problems)

        if self.backend not in SUPPORTED_BACKENDS:
            problems.append(
                f"NEVRA_BACKEND must be one of {', '.join(SUPPORTED_BACKENDS)} (got {self.backend!r})"
            )
        if self.backend == "openrouter" and not self.openrouter_api_key:
            missing.append("OPENROUTER_API_KEY")
        if self.default_provider not in PROVIDER_IDS:
            problems.append(
                f"NEVRA_DEFAULT_PROVIDER must be one of {', '.join(PROVIDER_IDS)} "
                f"(got {self.default_provider!r})"
            )
        if not isinstance(logging.getLevelName(self.log_level), int):
            problems.append(f"NEVRA_LOG_LEVEL is not a valid logging level (got {self.log_level!r})")

        if missing:
            problems.insert(0, f"Missing required environment variables: {', '.join(missing)}")

        if problems:
            raise ConfigError(
                "\n".join(problems) + "\n"
                "Please create a .env file with these variables. "
                "Set NEVRA_BACKEND=echo to run without an OpenRouter key."
            )

    def max_tokens_for(self, mode: str) -> int:
        """Completion token ceiling for a generation mode."""
        return self.builder_max_tokens if mode == "builder" else self.tutor_max_tokens


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the application."""
    if level is None:
        try:
            level = get_config().log_level
        except ConfigError:
            level = "INFO"
    logging.basicConfig(level=level, format=LOG_FORMAT)
