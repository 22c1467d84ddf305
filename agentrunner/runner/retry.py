"""Retry delay policy applied between failed task attempts."""
from __future__ import annotations

from dataclasses import dataclass

from agentrunner.core.models import AgentConfig


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff; a zero base delay re-enqueues immediately."""

    base_delay_ms: int = 0
    max_delay_ms: int = 30_000

    @classmethod
    def from_config(cls, config: AgentConfig) -> RetryPolicy:
        return cls(base_delay_ms=config.retry_backoff_ms, max_delay_ms=config.retry_backoff_max_ms)

    @property
    def immediate(self) -> bool:
        return self.base_delay_ms <= 0

    def delay_seconds(self, retry_count: int) -> float:
        """Delay before the attempt following retry number ``retry_count`` (1-based)."""
        if self.immediate or retry_count <= 0:
            return 0.0
        delay_ms = min(self.base_delay_ms * (2 ** (retry_count - 1)), self.max_delay_ms)
        return delay_ms / 1000
