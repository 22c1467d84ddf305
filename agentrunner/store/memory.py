"""Reference store keeping serialized snapshots in process memory."""
from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional

from agentrunner.core.errors import InvalidStateError
from agentrunner.core.models import AgentState, Task, TaskStatus
from agentrunner.store.base import StateStore


class InMemoryStateStore(StateStore):
    """Store holding the same serialized view a persistent backend would write."""

    def __init__(self) -> None:
        self._states: Dict[str, Dict[str, Any]] = {}
        self._completed: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._failed: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        # Outcome order across both histories, for newest-first listing.
        self._history: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def save_state(self, agent_id: str, state: AgentState) -> None:
        serialized = state.to_dict()
        async with self._lock:
            self._states[agent_id] = serialized

    async def load_state(self, agent_id: str) -> AgentState:
        async with self._lock:
            serialized = self._states.get(agent_id)
        if serialized is None:
            return AgentState(agent_id=agent_id)
        return AgentState.from_dict(serialized)

    async def record_task_outcome(self, agent_id: str, task: Task) -> None:
        if not task.is_terminal:
            raise InvalidStateError(
                f"Task '{task.id}' is {task.status.name}; only terminal tasks are recorded"
            )
        serialized = task.to_dict()
        async with self._lock:
            if task.status is TaskStatus.COMPLETED:
                self._completed[agent_id].append(serialized)
            else:
                self._failed[agent_id].append(serialized)
            self._history[agent_id].append(serialized)

    async def delete_state(self, agent_id: str) -> None:
        async with self._lock:
            self._states.pop(agent_id, None)
            self._completed.pop(agent_id, None)
            self._failed.pop(agent_id, None)
            self._history.pop(agent_id, None)

    async def get_task_history(self, agent_id: str, limit: Optional[int] = None) -> List[Task]:
        async with self._lock:
            entries = list(reversed(self._history.get(agent_id, [])))
        if limit is not None:
            entries = entries[:limit]
        return [Task.from_dict(entry) for entry in entries]

    async def completed_tasks(self, agent_id: str) -> List[Task]:
        async with self._lock:
            entries = list(self._completed.get(agent_id, []))
        return [Task.from_dict(entry) for entry in entries]

    async def failed_tasks(self, agent_id: str) -> List[Task]:
        async with self._lock:
            entries = list(self._failed.get(agent_id, []))
        return [Task.from_dict(entry) for entry in entries]
