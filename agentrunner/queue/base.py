"""Contract every task queue backend implements."""
from __future__ import annotations

import abc
from typing import List, Optional

from agentrunner.core.models import Task


class TaskQueue(abc.ABC):
    """Ordered holding area for pending tasks.

    ``dequeue`` returns the highest-priority task, FIFO among equal priorities.
    A persistent backend must keep that ordering across restarts. Tasks that
    were dequeued but never finished are the runner's to recover, not the
    queue's.
    """

    @abc.abstractmethod
    async def enqueue(self, task: Task) -> None:
        """Insert a task; raises ``QueueDuplicateTaskError`` if its id is queued."""

    @abc.abstractmethod
    async def dequeue(self) -> Optional[Task]:
        """Remove and return the next task, or ``None`` when empty."""

    @abc.abstractmethod
    async def peek(self) -> Optional[Task]:
        """Return the next task without removing it."""

    @abc.abstractmethod
    async def size(self) -> int:
        ...

    @abc.abstractmethod
    async def remove(self, task_id: str) -> bool:
        """Drop a queued task; returns whether it was present."""

    @abc.abstractmethod
    async def clear(self) -> None:
        ...

    @abc.abstractmethod
    async def snapshot(self) -> List[Task]:
        """Return queued tasks in dequeue order without mutating the queue."""
