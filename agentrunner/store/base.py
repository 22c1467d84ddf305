"""Contract every agent state store implements."""
from __future__ import annotations

import abc
from typing import List, Optional

from agentrunner.core.models import AgentState, Task


class StateStore(abc.ABC):
    """Persistence boundary for agent snapshots and terminal task history.

    Implementations must tolerate concurrent calls from several in-flight task
    completions. Snapshots are last-write-wins; history appends must never be
    dropped.
    """

    @abc.abstractmethod
    async def save_state(self, agent_id: str, state: AgentState) -> None:
        """Overwrite the stored snapshot for ``agent_id``."""

    @abc.abstractmethod
    async def load_state(self, agent_id: str) -> AgentState:
        """Return the last saved snapshot, or a fresh default state."""

    @abc.abstractmethod
    async def record_task_outcome(self, agent_id: str, task: Task) -> None:
        """Append a terminal task to the completed or failed history."""

    @abc.abstractmethod
    async def delete_state(self, agent_id: str) -> None:
        ...

    @abc.abstractmethod
    async def get_task_history(self, agent_id: str, limit: Optional[int] = None) -> List[Task]:
        """Return terminal tasks for an agent, newest first."""
