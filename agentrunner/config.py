"""Configuration management for the agent runner."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RunnerDefaults:
    """Defaults applied to agents created without explicit limits."""

    max_concurrent_tasks: int = 5
    retry_attempts: int = 3
    timeout_ms: int = 300_000
    retry_backoff_ms: int = 0
    retry_backoff_max_ms: int = 30_000


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    runner: RunnerDefaults = RunnerDefaults()
    log_level: str = "INFO"
    log_json: bool = False
    environment: str = "development"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        runner = RunnerDefaults(
            max_concurrent_tasks=int(os.getenv("AGENT_MAX_CONCURRENT_TASKS", "5")),
            retry_attempts=int(os.getenv("AGENT_RETRY_ATTEMPTS", "3")),
            timeout_ms=int(os.getenv("AGENT_TIMEOUT_MS", "300000")),
            retry_backoff_ms=int(os.getenv("AGENT_RETRY_BACKOFF_MS", "0")),
            retry_backoff_max_ms=int(os.getenv("AGENT_RETRY_BACKOFF_MAX_MS", "30000")),
        )
        return cls(
            runner=runner,
            log_level=os.getenv("AGENT_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("AGENT_LOG_JSON", False),
            environment=os.getenv("ENVIRONMENT", "development"),
        )


# Global settings instance
settings = Settings.from_env()
