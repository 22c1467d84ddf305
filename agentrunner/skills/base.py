"""Skill interface executed by the runner for a task type."""
from __future__ import annotations

import abc
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from agentrunner.core.models import TaskResult


class Skill(abc.ABC):
    """Abstract capability executing the payload of one task type.

    ``execute`` may return a ``TaskResult`` or a mapping shaped like
    ``{"data": ..., "metadata": {"tokens_used": ..., "api_calls": ...}}``.
    A mapping carrying ``"success": False`` is treated as a failed attempt.
    """

    name: str = ""
    description: str = ""

    @abc.abstractmethod
    async def execute(self, payload: Any) -> Any:
        """Run the skill against a task payload."""


class FunctionSkill(Skill):
    """Adapter exposing a plain coroutine function as a skill."""

    def __init__(
        self,
        func: Callable[[Any], Awaitable[Any]],
        *,
        name: Optional[str] = None,
        description: str = "",
    ) -> None:
        self._func = func
        self.name = name or getattr(func, "__name__", "skill")
        self.description = description

    async def execute(self, payload: Any) -> Any:
        return await self._func(payload)


class SkillFailure(Exception):
    """Raised when a skill reports failure through its result instead of raising."""


def normalize_result(raw: Any) -> TaskResult:
    """Coerce whatever a skill returned into a ``TaskResult``."""
    if isinstance(raw, TaskResult):
        return raw
    if isinstance(raw, Mapping):
        if raw.get("success") is False:
            raise SkillFailure(str(raw.get("error") or "Skill reported failure"))
        metadata: Dict[str, Any] = dict(raw.get("metadata") or {})
        return TaskResult(data=raw.get("data"), metadata=metadata)
    return TaskResult(data=raw)
