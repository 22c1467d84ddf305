"""Error taxonomy shared by the registry, queue, store and runner."""
from __future__ import annotations

from typing import Optional


class AgentRunnerError(Exception):
    """Base class for every error raised by the runner core."""


class AlreadyRunningError(AgentRunnerError):
    """Raised when ``start()`` is called on a running or paused agent."""

    def __init__(self, agent_id: str, status: str) -> None:
        super().__init__(f"Agent '{agent_id}' is already {status.lower()}")
        self.agent_id = agent_id
        self.status = status


class InvalidStateError(AgentRunnerError):
    """Raised when a lifecycle or task transition is not allowed from the current state."""


class DuplicateSkillError(AgentRunnerError):
    def __init__(self, task_type: str) -> None:
        super().__init__(f"A skill is already registered for task type '{task_type}'")
        self.task_type = task_type


class SkillNotFoundError(AgentRunnerError, KeyError):
    def __init__(self, task_type: str) -> None:
        super().__init__(f"No skill registered for task type '{task_type}'")
        self.task_type = task_type

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return self.args[0]


class TaskExecutionError(AgentRunnerError):
    """Wraps a skill failure or timeout for a single task attempt."""

    def __init__(self, task_id: str, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.timed_out = timed_out


class QueueDuplicateTaskError(AgentRunnerError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' is already queued")
        self.task_id = task_id


class AgentNotFoundError(AgentRunnerError, KeyError):
    def __init__(self, agent_id: str, detail: Optional[str] = None) -> None:
        super().__init__(detail or f"Unknown agent '{agent_id}'")
        self.agent_id = agent_id

    def __str__(self) -> str:
        return self.args[0]
