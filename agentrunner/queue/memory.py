"""Single-process priority queue backed by a binary heap."""
from __future__ import annotations

import heapq
import itertools
from typing import Dict, List, Optional, Tuple

from agentrunner.core.errors import QueueDuplicateTaskError
from agentrunner.core.models import Task
from agentrunner.queue.base import TaskQueue

# (negated priority, insertion sequence, task id)
_Entry = Tuple[int, int, str]


class InMemoryTaskQueue(TaskQueue):
    """Heap ordered by priority then insertion order.

    Removal is lazy: a heap entry is live only while ``_live`` maps its task id
    to the same insertion sequence.
    """

    def __init__(self) -> None:
        self._heap: List[_Entry] = []
        self._live: Dict[str, Tuple[int, Task]] = {}
        self._counter = itertools.count()

    async def enqueue(self, task: Task) -> None:
        if task.id in self._live:
            raise QueueDuplicateTaskError(task.id)
        sequence = next(self._counter)
        self._live[task.id] = (sequence, task)
        heapq.heappush(self._heap, (-task.priority, sequence, task.id))

    async def dequeue(self) -> Optional[Task]:
        self._discard_stale()
        if not self._heap:
            return None
        _, _, task_id = heapq.heappop(self._heap)
        _, task = self._live.pop(task_id)
        return task

    async def peek(self) -> Optional[Task]:
        self._discard_stale()
        if not self._heap:
            return None
        return self._live[self._heap[0][2]][1]

    async def size(self) -> int:
        return len(self._live)

    async def remove(self, task_id: str) -> bool:
        return self._live.pop(task_id, None) is not None

    async def clear(self) -> None:
        self._heap.clear()
        self._live.clear()

    async def snapshot(self) -> List[Task]:
        return [self._live[entry[2]][1] for entry in sorted(self._heap) if self._is_live(entry)]

    def _is_live(self, entry: _Entry) -> bool:
        live = self._live.get(entry[2])
        return live is not None and live[0] == entry[1]

    def _discard_stale(self) -> None:
        while self._heap and not self._is_live(self._heap[0]):
            heapq.heappop(self._heap)
