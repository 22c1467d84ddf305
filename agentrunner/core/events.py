"""Lightweight in-memory bus fanning runner lifecycle events out to subscribers."""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from agentrunner.core.models import utcnow


class EventKind(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    RESUMED = "resumed"
    STOPPED = "stopped"
    TASK_QUEUED = "task_queued"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_RETRYING = "task_retrying"
    TASK_FAILED = "task_failed"


@dataclass(slots=True)
class RunnerEvent:
    """Notification published by a runner whenever its state or a task changes."""

    kind: EventKind
    agent_id: str
    task_id: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


class EventBus:
    """Async event hub; every subscriber gets its own mailbox."""

    def __init__(self) -> None:
        self._mailboxes: Dict[str, asyncio.Queue[RunnerEvent]] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._mailboxes)

    def publish(self, event: RunnerEvent) -> None:
        """Deliver an event to every current subscriber without blocking."""
        for queue in list(self._mailboxes.values()):
            queue.put_nowait(event)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[RunnerEvent]]:
        """Context manager yielding a mailbox that receives events until exit."""
        subscriber_id = uuid.uuid4().hex
        queue: asyncio.Queue[RunnerEvent] = asyncio.Queue()
        self._mailboxes[subscriber_id] = queue
        try:
            yield queue
        finally:
            self._mailboxes.pop(subscriber_id, None)
